# 确保 pytest 时可以直接 `import oracle_relay...` / `import ingestion...` / `import apps...`
import os
import sys

ROOT = os.path.dirname(os.path.dirname(__file__))
SRC = os.path.join(ROOT, "src")

for path in (SRC, ROOT):
    if path not in sys.path:
        sys.path.insert(0, path)
