import os
import sys

# Add repo root to Python import path so `import matrix_live...` works
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from dotenv import load_dotenv

load_dotenv()

from matrix_live.config import get_settings
from matrix_live.jobs.poller import fetch_feed
from matrix_live.parsing.matrix_text import format_raw_matrix
from matrix_live.providers.base import ProviderError
from matrix_live.providers.loader import get_provider


def main() -> int:
    settings = get_settings()
    provider = get_provider()

    try:
        payload = fetch_feed(provider, settings.split_char, settings.symbol_prefix)
    except ProviderError as e:
        print("Fetch failed:", e)
        return 1
    finally:
        provider.close()

    print("messageId:", payload.message_id)
    print("sent:", payload.sent)
    print(f"records: {len(payload.items)}\n")
    print(format_raw_matrix(payload.items))
    return 0


if __name__ == "__main__":
    sys.exit(main())
