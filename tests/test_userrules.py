from pathlib import Path

from pacrelay.userrules import UserRules, pac_dir


def test_pac_dir_under_home(tmp_path):
    result = pac_dir(tmp_path)
    assert result.relative_to(tmp_path).parts == (".config", "trojan-qt5", "pac")


def test_pac_dir_defaults_to_user_home():
    assert pac_dir() == pac_dir(Path.home())


def test_rule_file_name(tmp_path):
    rules = UserRules(tmp_path)
    assert rules.path.name == "user-rule.txt"
    assert rules.path.parent == tmp_path


def test_load_missing_returns_empty(tmp_path):
    assert UserRules(tmp_path / "absent").load() == ""


def test_round_trip(tmp_path):
    rules = UserRules(tmp_path)
    text = "||example.com\n@@||example.org\n"
    rules.save(text)
    assert rules.load() == text


def test_crlf_normalised(tmp_path):
    rules = UserRules(tmp_path)
    rules.save("a\r\nb\r\n")
    assert rules.load() == "a\nb\n"
    assert b"\r" not in rules.path.read_bytes()


def test_save_truncates_previous_content(tmp_path):
    rules = UserRules(tmp_path)
    rules.save("a much longer line of rules\n")
    rules.save("short\n")
    assert rules.load() == "short\n"


def test_unicode_stored_as_utf8(tmp_path):
    rules = UserRules(tmp_path)
    rules.save("! 规则\n")
    assert rules.path.read_bytes() == "! 规则\n".encode("utf-8")
    assert rules.load() == "! 规则\n"


def test_save_creates_directory(tmp_path):
    target = tmp_path / "nested" / "pac"
    rules = UserRules(target)
    rules.save("x\n")
    assert rules.path.is_file()
    assert rules.load() == "x\n"


def test_string_directory_accepted(tmp_path):
    rules = UserRules(str(tmp_path))
    rules.save("y\n")
    assert rules.directory == tmp_path
    assert rules.load() == "y\n"