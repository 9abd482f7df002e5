from __future__ import annotations

import os

APP_NAME = "stegvault"
APP_VERSION = "0.1.0"
APP_DESCRIPTION = "Chunked AES-256-GCM file containers with LSB image steganography"

MIB = 1024 * 1024

# Container layout: salt(16) | nonce(12) | chunks | metadata(M) | M as uint32 LE
CONTAINER_SETTINGS = {
    "format_version": "1.0",
    "chunk_size": 10 * MIB,
    "salt_bytes": 16,
    "nonce_bytes": 12,
    "tag_bytes": 16,
    "trailer_bytes": 4,
    "min_container_bytes": 32 + 4,
}

CRYPTO_SETTINGS = {
    "key_bytes": 32,
    "pbkdf2": {
        "iterations": 100_000,
        "key_len": 32,
    },
}

LIMITS = {
    "max_file_size": 2 * 1024 * MIB,
    "default_mime_type": "application/octet-stream",
    "encrypted_suffix": ".enc",
}

STEGO_SETTINGS = {
    "channels": 3,             # R, G, B; alpha is never written
    "header_bits": 32,
    "write_block_bits": 8 * MIB,
    "text_filename": "secret.txt",
    "text_mime_type": "text/plain",
}

DISPATCH_SETTINGS = {
    "max_workers": os.cpu_count() or 1,
    "executor": "thread",      # thread / process
    "max_in_flight": 4,
}

# Logging
LOGGING_SETTINGS = {
    "level": os.environ.get("STEGVAULT_LOG_LEVEL", "INFO"),
    "log_dir": os.environ.get("STEGVAULT_LOG_DIR"),   # file logging only when set
    "log_file": "stegvault.log",
    "max_bytes": 2 * MIB,
    "backup_count": 3,
}
