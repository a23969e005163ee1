"""
PassVault - Local Command-Line Password Manager

Generates passwords, encrypts them with a master-password-derived key, and
keeps them in a local SQLite file.

Key Features:
- Local only: all encryption happens on this machine
- Strong crypto: PBKDF2-HMAC-SHA256 (100k) + AES-256-GCM
- Fresh salt and nonce for every stored secret
- Wrong password and tampered data fail closed the same way

Components:
- crypto.py: Encryption envelope engine (seal/open, password hash)
- generator.py: Random password generator
- vault.py: SQLite record store
- config.py: Environment-driven settings
- cli.py: Command-line interface (uses built-in argparse)

Usage:
    passvault init                          # Create vault
    passvault generate --length 20          # Generate a password
    passvault save github --username me     # Store a password
    passvault get github                    # Show it
    passvault list                          # List entries
"""

__version__ = "1.0.0"
__author__ = "PassVault Team"
