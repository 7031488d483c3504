"""Allow ``python -m solana_transfer_extra``."""

from .main import main

if __name__ == "__main__":
    main()
