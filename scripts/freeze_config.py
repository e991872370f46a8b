import sys
from pathlib import Path

from coinledger.config import compute_config_hash, freeze_config, load_config, verify_config_lock


def main() -> None:
    if len(sys.argv) < 2:
        raise SystemExit("Usage: python scripts/freeze_config.py <config_path>")
    path = Path(sys.argv[1])
    config = load_config(path)
    lock_path = freeze_config(path)
    ok = verify_config_lock(path, lock_path)
    status = "ok" if ok else "mismatch"
    print(f"{config.name} {config.version}: {len(config.instruments)} instruments, store={config.store.backend}")
    print(f"Frozen {path} -> {lock_path} sha256={compute_config_hash(path)[:12]} ({status})")


if __name__ == "__main__":
    main()
