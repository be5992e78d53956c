import os
import tempfile

# database.py builds its engine at import time; keep it out of the checkout.
os.environ.setdefault("BILLS_DATA_DIR", tempfile.mkdtemp(prefix="bills-test-"))
