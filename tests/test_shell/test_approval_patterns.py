from notabene.shell.approval_patterns import ApprovalPatterns


def test_exact_pattern_matches_command_and_its_arguments():
    patterns = ApprovalPatterns(["ls"])

    assert patterns.is_approved("ls")
    assert patterns.is_approved("  ls  ")
    assert patterns.is_approved("ls -la /tmp")
    assert not patterns.is_approved("lsof")
    assert not patterns.is_approved("cat ls")


def test_exact_multi_word_pattern_needs_whole_command():
    patterns = ApprovalPatterns(["git status"])

    assert patterns.is_approved("git status")
    assert not patterns.is_approved("git push")


def test_glob_pattern_matches_prefix():
    patterns = ApprovalPatterns(["git *"])

    assert patterns.is_approved("git status")
    assert patterns.is_approved("git log --oneline")
    assert not patterns.is_approved("gitk")
    assert not patterns.is_approved("hg status")


def test_glob_escapes_regex_characters():
    patterns = ApprovalPatterns(["echo (a+b)*"])

    assert patterns.is_approved("echo (a+b) and more")
    assert not patterns.is_approved("echo aab")


def test_glob_in_the_middle():
    patterns = ApprovalPatterns(["write_file /tmp/*.txt"])

    assert patterns.is_approved("write_file /tmp/notes.txt")
    assert not patterns.is_approved("write_file /etc/notes.txt")


def test_matching_is_case_sensitive():
    patterns = ApprovalPatterns(["ls"])

    assert not patterns.is_approved("LS")


def test_blank_patterns_are_ignored_and_counted():
    patterns = ApprovalPatterns(["", "   ", "pwd", "npm *"])

    assert patterns.count == 2
    assert patterns.has_patterns
    assert not ApprovalPatterns().has_patterns


def test_empty_set_approves_nothing():
    assert not ApprovalPatterns().is_approved("ls")
