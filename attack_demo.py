"""
PassVault - Attack Demonstration

Run: python attack_demo.py

What it shows (and why attacks fail):
1) Wrong master password is rejected at unlock.
2) Decrypting an envelope with the wrong password fails closed.
3) Ciphertext tampering is detected by AES-GCM.
4) Tag tampering is detected by AES-GCM.
5) Swapping two entries' envelopes still only yields each entry's own data
   under the right password, and nothing under a wrong one.
"""

import os
import sqlite3
import tempfile

from passvault import crypto
from passvault.vault import PasswordEntry, Vault, WrongMasterPassword


LINE = "=" * 70


def section(title: str):
    print(f"\n{LINE}\n{title}\n{LINE}")


def flip_first_bit(data: bytes) -> bytes:
    out = bytearray(data)
    out[0] ^= 1
    return bytes(out)


def read_envelope(db_path: str, name: str) -> crypto.Envelope:
    conn = sqlite3.connect(db_path)
    try:
        row = conn.execute(
            "SELECT encrypted_password FROM passwords WHERE name = ?", (name,)
        ).fetchone()
    finally:
        conn.close()
    return crypto.Envelope.from_json(row[0])


def write_envelope(db_path: str, name: str, envelope: crypto.Envelope):
    conn = sqlite3.connect(db_path)
    try:
        with conn:
            conn.execute(
                "UPDATE passwords SET encrypted_password = ? WHERE name = ?",
                (envelope.to_json(), name)
            )
    finally:
        conn.close()


def main():
    tmpdir = tempfile.mkdtemp()
    db_path = os.path.join(tmpdir, "passwords.db")
    master_password = "CorrectHorseBatteryStaple!"

    vault = Vault(db_path)
    vault.initialize(master_password)
    vault.save_entry(PasswordEntry(
        name="example.com",
        username="alice@example.com",
        password="super_secret_password",
        url="https://example.com/login",
    ))
    vault.save_entry(PasswordEntry(name="bank", password="bank_pin_1234"))
    vault.lock()

    # 1) Wrong master password at unlock
    section("Attack 1: Wrong master password")
    try:
        Vault(db_path).unlock("wrong_password")
        print("Unexpected: vault unlocked with wrong password")
    except WrongMasterPassword as e:
        print(f"Expected failure: unlock rejected ({e})")

    # 2) Offline guess against a stolen envelope
    section("Attack 2: Offline password guess on a stolen envelope")
    envelope = read_envelope(db_path, "example.com")
    try:
        crypto.open_envelope(envelope, "password123")
        print("Unexpected: envelope opened with a guessed password")
    except crypto.AuthenticationFailed as e:
        print(f"Expected failure: {e}")

    # 3) Ciphertext tampering
    section("Attack 3: Ciphertext tampering (AES-GCM)")
    tampered = crypto.Envelope(envelope.salt, envelope.nonce,
                               flip_first_bit(envelope.ciphertext), envelope.tag)
    write_envelope(db_path, "example.com", tampered)
    vault.unlock(master_password)
    try:
        vault.get_entry("example.com")
        print("Unexpected: tampered ciphertext still decrypted")
    except crypto.AuthenticationFailed as e:
        print(f"Expected failure: AES-GCM detected tampering ({e})")
    vault.lock()

    # 4) Tag tampering
    section("Attack 4: Tag tampering (AES-GCM)")
    tampered = crypto.Envelope(envelope.salt, envelope.nonce,
                               envelope.ciphertext, flip_first_bit(envelope.tag))
    write_envelope(db_path, "example.com", tampered)
    vault.unlock(master_password)
    try:
        vault.get_entry("example.com")
        print("Unexpected: tampered tag accepted")
    except crypto.AuthenticationFailed as e:
        print(f"Expected failure: tag verification failed ({e})")
    vault.lock()

    # Restore original envelope
    write_envelope(db_path, "example.com", envelope)

    # 5) Envelope swap
    section("Attack 5: Envelope swap between entries")
    bank = read_envelope(db_path, "bank")
    write_envelope(db_path, "example.com", bank)
    vault.unlock(master_password)
    shown = vault.get_entry("example.com").password
    vault.lock()
    print(f"Swapped row decrypts to the bank secret only: {shown == 'bank_pin_1234'}")
    try:
        crypto.open_envelope(bank, "not-the-master")
        print("Unexpected: swapped envelope opened with wrong password")
    except crypto.AuthenticationFailed:
        print("Expected failure: swapped envelope still needs the master password")

    print("\nDemo complete. All showcased attacks failed as expected.")


if __name__ == "__main__":
    main()
