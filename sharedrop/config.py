import os


class Settings:
    def __init__(self) -> None:
        # Attachments and the ledger live side by side in this directory
        self.SHARED_DIR: str = os.getenv("SHARED_DIR", "shared")
        self.LEDGER_FILENAME: str = os.getenv("LEDGER_FILENAME", "messages.json")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.MAX_UPLOAD_FILES: int = int(os.getenv("MAX_UPLOAD_FILES", "20"))
        self.HOST: str = os.getenv("HOST", "127.0.0.1")
        self.PORT: int = int(os.getenv("PORT", "3021"))


settings = Settings()
