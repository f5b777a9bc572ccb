import pytest

from securescan.ai_agent.diff import DiffApplyError, apply_diff, generate_diff


def test_identical_input_has_headers_only():
    text = "a\nb\nc\n"
    assert generate_diff(text, text, "f.js") == "--- a/f.js\n+++ b/f.js\n"
    assert apply_diff(text, generate_diff(text, text, "f.js")) == text


def test_single_line_change():
    original = "\n".join(f"line{i}" for i in range(1, 11))
    fixed = original.replace("line5", "LINE5")
    diff = generate_diff(original, fixed, "src/app.py")
    assert diff == (
        "--- a/src/app.py\n"
        "+++ b/src/app.py\n"
        "@@ -2,7 +2,7 @@\n"
        " line2\n"
        " line3\n"
        " line4\n"
        "-line5\n"
        "+LINE5\n"
        " line6\n"
        " line7\n"
        " line8\n"
    )
    assert apply_diff(original, diff) == fixed


def test_removed_lines_precede_added_lines_within_a_run():
    diff = generate_diff("a\nb\nc", "a\nB\nC", "f")
    body = diff.splitlines()[3:]
    assert body == [" a", "-b", "-c", "+B", "+C"]


def test_nearby_changes_share_a_hunk():
    original = [f"l{i}" for i in range(20)]
    fixed = list(original)
    fixed[3] = "x"
    fixed[10] = "y"  # six unchanged lines between the runs
    diff = generate_diff("\n".join(original), "\n".join(fixed), "f")
    assert diff.count("@@ -") == 1


def test_distant_changes_get_separate_hunks():
    original = [f"l{i}" for i in range(30)]
    fixed = list(original)
    fixed[3] = "x"
    fixed[11] = "y"  # seven unchanged lines between the runs
    original_text, fixed_text = "\n".join(original), "\n".join(fixed)
    diff = generate_diff(original_text, fixed_text, "f")
    assert diff.count("@@ -") == 2
    assert apply_diff(original_text, diff) == fixed_text


@pytest.mark.parametrize("original, fixed", [
    ("a\nb\nc", "a\nb\nc\nd\ne"),
    ("a\nb\nc\nd\ne", "a\nb"),
    ("", "new file\n"),
    ("only\n", ""),
    ("x = eval(input)\nprint(x)\n", "import ast\nx = ast.literal_eval(input)\nprint(x)\n"),
])
def test_apply_reproduces_fixed_text(original, fixed):
    assert apply_diff(original, generate_diff(original, fixed, "f")) == fixed


def test_appended_lines_header():
    diff = generate_diff("a", "a\nb", "f")
    assert "@@ -1,1 +1,2 @@" in diff
    assert diff.endswith(" a\n+b\n")


def test_apply_rejects_mismatched_context():
    diff = generate_diff("a\nb\nc", "a\nX\nc", "f")
    with pytest.raises(DiffApplyError):
        apply_diff("a\nZ\nc", diff)


def test_apply_rejects_missing_header():
    with pytest.raises(DiffApplyError):
        apply_diff("a", "@@ -1,1 +1,1 @@\n-a\n+b\n")
