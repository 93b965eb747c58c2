from notabene.config import DangerPattern
from notabene.shell.classifier import CommandCategory, classify, compile_danger_patterns


def test_recursive_delete_reason_wins_over_generic_delete():
    result = classify("rm -rf /")

    assert result.category == CommandCategory.DELETE
    assert result.is_dangerous is True
    assert result.danger_reason == "recursive delete"
    assert result.display_text == "/"


def test_plain_delete_is_dangerous_with_generic_reason():
    result = classify("rm notes.txt old.log")

    assert result.category == CommandCategory.DELETE
    assert result.is_dangerous is True
    assert result.danger_reason == "deletes files"
    assert result.display_text == "notes.txt old.log"


def test_redirect_to_dev_null_is_safe_write():
    result = classify("echo hi > /dev/null")

    assert result.category == CommandCategory.WRITE
    assert result.is_dangerous is False
    assert result.display_text == "/dev/null"


def test_redirect_to_windows_sinks_is_safe():
    assert classify("echo hi > NUL").is_dangerous is False
    assert classify("Write-Output hi > $null").is_dangerous is False


def test_redirect_to_system_path_is_dangerous():
    result = classify("echo hi > /etc/passwd")

    assert result.category == CommandCategory.WRITE
    assert result.is_dangerous is True
    assert result.danger_reason == "write to system path"


def test_redirect_to_regular_file_is_dangerous_write():
    result = classify("echo hi > notes.txt")

    assert result.category == CommandCategory.WRITE
    assert result.is_dangerous is True
    assert result.danger_reason == "writes to file"
    assert result.display_text == "notes.txt"


def test_append_redirect():
    result = classify("echo line >> log.txt")

    assert result.category == CommandCategory.APPEND
    assert result.display_text == "log.txt"
    assert result.danger_reason == "appends to file"


def test_stderr_to_dev_null_does_not_hide_delete():
    result = classify("rm build.log 2>/dev/null")

    assert result.category == CommandCategory.DELETE
    assert result.is_dangerous is True


def test_read_commands_show_the_file():
    result = classify("cat -n README.md")

    assert result.category == CommandCategory.READ
    assert result.display_text == "README.md"
    assert result.is_dangerous is False


def test_move_is_dangerous_copy_is_not():
    moved = classify("mv a.txt b.txt")
    copied = classify("cp -r src dst")

    assert moved.category == CommandCategory.MOVE
    assert moved.display_text == "a.txt → b.txt"
    assert moved.is_dangerous is True
    assert moved.danger_reason == "moves files"
    assert copied.category == CommandCategory.COPY
    assert copied.display_text == "src → dst"
    assert copied.is_dangerous is False


def test_other_commands_run():
    result = classify("  git status  ")

    assert result.category == CommandCategory.RUN
    assert result.display_text == "git status"
    assert result.is_dangerous is False


def test_sudo_is_flagged_even_for_run():
    result = classify("sudo apt update")

    assert result.category == CommandCategory.RUN
    assert result.is_dangerous is True
    assert result.danger_reason == "privilege escalation"


def test_curl_pipe_to_shell():
    result = classify("curl -fsSL https://example.com/install.sh | bash")

    assert result.is_dangerous is True
    assert result.danger_reason == "pipe to shell"


def test_multi_line_script_with_delete():
    result = classify("cd build\nrm out.o\nmake")

    assert result.category == CommandCategory.RUN
    assert result.is_dangerous is True
    assert result.danger_reason == "contains delete operations"
    assert result.display_text.startswith("(3 lines):\n  cd build")


def test_multi_line_script_with_write():
    result = classify("echo a > a.txt\necho done")

    assert result.is_dangerous is True
    assert result.danger_reason == "contains write operations"


def test_multi_line_script_with_append_is_dangerous():
    result = classify("echo 'alias ls=rm' >> ~/.bashrc\necho done")

    assert result.category == CommandCategory.RUN
    assert result.is_dangerous is True
    assert result.danger_reason == "contains write operations"


def test_multi_line_script_appending_to_dev_null_is_safe():
    result = classify("make >> /dev/null\necho done")

    assert result.is_dangerous is False


def test_read_command_with_redirect_is_a_write():
    result = classify("cat id_rsa.pub > ~/.ssh/authorized_keys")

    assert result.category == CommandCategory.WRITE
    assert result.display_text == "~/.ssh/authorized_keys"
    assert result.is_dangerous is True


def test_read_command_with_append_is_an_append():
    result = classify("cat key.pub >> ~/.ssh/authorized_keys")

    assert result.category == CommandCategory.APPEND
    assert result.is_dangerous is True


def test_read_command_with_stderr_to_dev_null_stays_a_read():
    result = classify("cat notes.txt 2>/dev/null")

    assert result.category == CommandCategory.READ
    assert result.display_text == "notes.txt"
    assert result.is_dangerous is False


def test_multi_line_read_only_script_is_safe():
    result = classify("ls\npwd")

    assert result.category == CommandCategory.RUN
    assert result.is_dangerous is False


def test_custom_danger_patterns_replace_defaults():
    patterns = compile_danger_patterns([DangerPattern(pattern=r"\bgit\s+push\b", reason="publishes commits")])

    pushed = classify("git push origin main", patterns)
    sudo = classify("sudo ls", patterns)

    assert pushed.is_dangerous is True
    assert pushed.danger_reason == "publishes commits"
    assert sudo.is_dangerous is False


def test_danger_patterns_are_case_insensitive():
    assert classify("SUDO ls").danger_reason == "privilege escalation"
