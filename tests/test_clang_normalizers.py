from codescanner.normalizers.base import NormalizationContext
from codescanner.normalizers.clang_sa_normalizer import ClangSANormalizer, extract_issue_type
from codescanner.normalizers.clang_tidy_normalizer import ClangTidyNormalizer

CLANG_TIDY_OUTPUT = """\
/work/src/main.c:5:5: warning: Call to function 'strcpy' is insecure as it does not provide bounding of the memory buffer [clang-analyzer-security.insecureAPI.strcpy]
    strcpy(buf, "this string is far too long");
    ^
/work/src/main.c:5:5: note: Call to function 'strcpy' is insecure
/work/src/main.c:4:10: warning: variable 'buf' is not initialized [cppcoreguidelines-init-variables]
    char buf[8];
         ^
/work/src/main.c:3:5: error: unknown type name 'foo' [clang-diagnostic-error]
/work/src/main.c:6:12: warning: 42 is a magic number
2 warnings and 1 error generated.
"""


def test_clang_tidy_parses_checks_snippets_and_skips_notes(src_dir):
    issues = ClangTidyNormalizer().parse_issues(CLANG_TIDY_OUTPUT)
    assert [(i.line, i.rule_id) for i in issues] == [
        (5, "clang-analyzer-security.insecureAPI.strcpy"),
        (4, "cppcoreguidelines-init-variables"),
        (3, "clang-diagnostic-error"),
        (6, "clang-tidy-check"),
    ]
    assert issues[0].snippet.startswith("strcpy(buf")
    assert issues[1].snippet == "char buf[8];"


def test_clang_tidy_severity_and_type(src_dir):
    ctx = NormalizationContext(source_dir=src_dir)
    findings = ClangTidyNormalizer().parse(CLANG_TIDY_OUTPUT.replace("/work/src/", ""), ctx)

    insecure, init, error, plain = findings
    assert insecure.severity == "medium"
    assert insecure.type == "Security"
    assert insecure.remediation == "Use secure alternatives to the insecure API functions."
    assert insecure.metadata["checkName"] == "clang-analyzer-security.insecureAPI.strcpy"
    assert insecure.name == "Security.InsecureAPI.Strcpy"

    assert init.severity == "low"
    assert init.type == "Code Quality"
    assert init.name == "Init Variables"
    assert init.remediation.startswith("Follow C++ Core Guidelines")

    assert error.severity == "high"
    assert plain.severity == "low"
    assert plain.remediation == "Review the issue and fix according to C++ best practices."


def test_clang_tidy_performance_check_is_medium():
    n = ClangTidyNormalizer()
    out = "a.cpp:1:1: warning: loop variable is copied [performance-for-range-copy]\n"
    issue = n.parse_issues(out)[0]
    assert n.map_severity(issue.severity, issue) == "medium"
    assert n.issue_type(issue) == "Performance"


CLANG_SA_OUTPUT = """\
scan-build: Using '/usr/bin/clang-17' for static analysis
main.c:5:5: warning: Call to function 'strcpy' is insecure [security.insecureAPI.strcpy]
util.c:12: error: Potential memory leak
clang: warning: argument unused during compilation: '-c' analyzer
scan-build: No bugs found.
"""


def test_clang_sa_parses_diagnostics_with_and_without_column(src_dir):
    ctx = NormalizationContext(source_dir=src_dir)
    findings = ClangSANormalizer().parse(CLANG_SA_OUTPUT, ctx, file_hint=str(src_dir / "main.c"))
    assert len(findings) == 3

    first, leak, generic = findings
    assert first.tool == "clangStaticAnalyzer"
    assert first.severity == "medium"
    assert first.location.column == 5
    assert first.name == "Clang Static Analyzer: Call to function"

    assert leak.severity == "high"
    assert leak.location.line == 12
    assert leak.name == "Clang Static Analyzer: memory leak"
    assert leak.metadata["issueType"] == "memory leak"
    assert leak.type == "Memory Safety"

    assert generic.name == "Clang Static Analyzer Issue"
    assert generic.file.file_path == "main.c"
    assert generic.location.line == 1
    assert "issueType" not in generic.metadata
    assert generic.metadata["approximateLocation"] is True
    assert "approximateLocation" not in leak.metadata


def test_extract_issue_type():
    assert extract_issue_type("Use after free of 'p'") == "Use after free"
    assert extract_issue_type("Value stored to 'x' is never read") == "Value stored to"
