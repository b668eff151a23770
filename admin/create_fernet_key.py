import os

from cryptography.fernet import Fernet
from dotenv import load_dotenv

load_dotenv()

CG_CREDENTIAL_FERNET_KEY = os.getenv("CG_CREDENTIAL_FERNET_KEY", None)


def generate_fernet_key() -> str:
    return Fernet.generate_key().decode("ascii")


if __name__ == "__main__":
    """Usage:
    python admin/create_fernet_key.py >> .env
    """
    if CG_CREDENTIAL_FERNET_KEY:
        print("# [CG_CREDENTIAL_FERNET_KEY] is already set; rotating it re-seals on restart.")
    print(f"CG_CREDENTIAL_FERNET_KEY={generate_fernet_key()}")
