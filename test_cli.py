"""
PassVault - CLI tests

Drives passvault.cli.main() end to end against a temporary vault file, with
getpass/input/clipboard replaced.
"""

import pytest

from passvault import cli


MASTER = "master-password-1"


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "pv" / "passwords.db")


@pytest.fixture
def prompts(monkeypatch):
    """Queue of answers returned by getpass.getpass, in order."""
    answers = []

    def fake_getpass(prompt=""):
        return answers.pop(0)

    monkeypatch.setattr(cli.getpass, "getpass", fake_getpass)
    return answers


@pytest.fixture
def initialized(db, prompts):
    prompts.extend([MASTER, MASTER])
    assert cli.main(["--db", db, "init"]) == 0
    return db


def run(db, prompts, *argv, master=MASTER):
    prompts.append(master)
    return cli.main(["--db", db, *argv])


def test_init_creates_vault(db, prompts, capsys):
    prompts.extend([MASTER, MASTER])
    assert cli.main(["--db", db, "init"]) == 0
    assert "Vault created" in capsys.readouterr().out

    # Second init refuses to overwrite
    assert cli.main(["--db", db, "init"]) == 1


def test_init_rejects_short_or_mismatched(db, prompts, capsys):
    prompts.append("short")
    assert cli.main(["--db", db, "init"]) == 1
    assert "too short" in capsys.readouterr().err

    prompts.extend([MASTER, MASTER + "x"])
    assert cli.main(["--db", db, "init"]) == 1
    assert "don't match" in capsys.readouterr().err


def test_generate_needs_no_vault(db, capsys):
    assert cli.main(["--db", db, "generate", "--length", "24", "--no-symbols"]) == 0
    out = capsys.readouterr().out
    password = out.strip().split(": ", 1)[1]
    assert len(password) == 24
    assert password.isalnum()


def test_generate_bad_length(db, capsys):
    assert cli.main(["--db", db, "gen", "--length", "4"]) == 1
    assert "at least 8" in capsys.readouterr().err


def test_save_get_list_search_delete(initialized, prompts, capsys):
    db = initialized
    capsys.readouterr()

    assert run(db, prompts, "save", "github", "--username", "alice",
               "--password", "s3cr3t!", "--url", "https://github.com",
               "--tags", "work, dev") == 0
    assert "saved successfully" in capsys.readouterr().out

    assert run(db, prompts, "get", "github") == 0
    out = capsys.readouterr().out
    assert "Password: s3cr3t!" in out
    assert "Username: alice" in out
    assert "Tags: work, dev" in out

    assert run(db, prompts, "list") == 0
    out = capsys.readouterr().out
    assert "Found 1 passwords" in out
    assert "s3cr3t!" not in out

    assert run(db, prompts, "search", "GIT") == 0
    assert "Name: github" in capsys.readouterr().out

    assert run(db, prompts, "search", "nope") == 0
    assert "No passwords found matching 'nope'" in capsys.readouterr().out

    assert run(db, prompts, "delete", "github", "--yes") == 0
    assert "deleted successfully" in capsys.readouterr().out

    assert run(db, prompts, "get", "github") == 1
    assert "password not found: github" in capsys.readouterr().err


def test_save_prompts_for_password(initialized, prompts, capsys):
    db = initialized
    prompts.extend([MASTER, "typed-secret"])
    assert cli.main(["--db", db, "save", "mail"]) == 0

    assert run(db, prompts, "get", "mail") == 0
    assert "Password: typed-secret" in capsys.readouterr().out


def test_save_empty_password_prompts(initialized, prompts, capsys):
    db = initialized
    prompts.extend([MASTER, "typed-instead"])
    assert cli.main(["--db", db, "save", "blank", "--password", ""]) == 0
    assert prompts == []

    assert run(db, prompts, "get", "blank") == 0
    assert "Password: typed-instead" in capsys.readouterr().out


def test_save_generated(initialized, prompts, capsys):
    db = initialized
    capsys.readouterr()
    assert run(db, prompts, "save", "bank", "--generate", "--length", "30") == 0
    generated = capsys.readouterr().out.splitlines()[0].split(": ", 1)[1]
    assert len(generated) == 30

    assert run(db, prompts, "get", "bank") == 0
    assert f"Password: {generated}" in capsys.readouterr().out


def test_get_copy_uses_clipboard(initialized, prompts, capsys, monkeypatch):
    db = initialized
    copied = []
    monkeypatch.setattr(cli.pyperclip, "copy", copied.append)

    assert run(db, prompts, "save", "site", "--password", "clip-me") == 0
    capsys.readouterr()

    assert run(db, prompts, "get", "site", "--copy") == 0
    out = capsys.readouterr().out
    assert copied == ["clip-me"]
    assert "clip-me" not in out


def test_wrong_master_password(initialized, prompts, capsys):
    capsys.readouterr()
    assert run(initialized, prompts, "list", master="not-the-master") == 1
    assert "wrong master password" in capsys.readouterr().err


def test_missing_vault(db, prompts, capsys):
    assert cli.main(["--db", db, "list"]) == 1
    assert "no vault" in capsys.readouterr().err


def test_non_sqlite_file(tmp_path, prompts, capsys):
    path = tmp_path / "notadb.db"
    path.write_bytes(b"\x00\xffjunk that is not sqlite\n" * 50)

    assert cli.main(["--db", str(path), "list"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("Error:")
    assert "cannot open vault" in err

    assert cli.main(["--db", str(path), "init"]) == 1
    assert capsys.readouterr().err.startswith("Error:")


def test_ctrl_c_at_prompt(initialized, monkeypatch, capsys):
    def interrupted(prompt=""):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli.getpass, "getpass", interrupted)
    assert cli.main(["--db", initialized, "list"]) == 130
    assert "Exiting..." in capsys.readouterr().out


def test_closed_stdin_at_prompt(initialized, monkeypatch, capsys):
    def closed(prompt=""):
        raise EOFError

    monkeypatch.setattr(cli.getpass, "getpass", closed)
    assert cli.main(["--db", initialized, "list"]) == 1
    assert "Error: input closed" in capsys.readouterr().err


def test_delete_cancelled(initialized, prompts, capsys, monkeypatch):
    db = initialized
    assert run(db, prompts, "save", "keep", "--password", "x") == 0
    monkeypatch.setattr("builtins.input", lambda prompt="": "n")
    capsys.readouterr()

    assert run(db, prompts, "del", "keep") == 0
    assert "Deletion cancelled" in capsys.readouterr().out
    assert run(db, prompts, "get", "keep") == 0


def test_stats_and_passwd(initialized, prompts, capsys):
    db = initialized
    assert run(db, prompts, "save", "one", "--password", "1111") == 0
    capsys.readouterr()

    assert run(db, prompts, "stats") == 0
    assert "Total passwords: 1" in capsys.readouterr().out

    new_master = "brand-new-master"
    prompts.extend([MASTER, new_master, new_master])
    assert cli.main(["--db", db, "passwd"]) == 0
    assert "1 entries re-encrypted" in capsys.readouterr().out

    assert run(db, prompts, "get", "one", master=new_master) == 0
    assert "Password: 1111" in capsys.readouterr().out
    assert run(db, prompts, "get", "one") == 1


def test_version(capsys):
    assert cli.main(["version"]) == 0
    assert capsys.readouterr().out.startswith("PassVault v")
