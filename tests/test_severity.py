import pytest

from codescanner.domain.models import SEVERITIES
from codescanner.normalizers.base import RawIssue
from codescanner.normalizers.clang_sa_normalizer import ClangSANormalizer
from codescanner.normalizers.clang_tidy_normalizer import ClangTidyNormalizer
from codescanner.normalizers.cppcheck_normalizer import CppcheckCustomNormalizer, CppcheckNormalizer
from codescanner.normalizers.semgrep_normalizer import SemgrepNormalizer
from codescanner.normalizers.snyk_normalizer import SnykNormalizer
from codescanner.normalizers.severity import classify_issue_type

NORMALIZERS = [
    SemgrepNormalizer(),
    SnykNormalizer(),
    ClangTidyNormalizer(),
    CppcheckNormalizer(),
    CppcheckCustomNormalizer("cppcheck-custom:latest"),
    ClangSANormalizer(),
]


@pytest.mark.parametrize("normalizer", NORMALIZERS, ids=lambda n: n.tool_name())
@pytest.mark.parametrize("token", [None, "", "   ", "bogus", "SEVERE", "0"])
def test_every_normalizer_maps_any_token_to_a_canonical_severity(normalizer, token):
    assert normalizer.map_severity(token) in SEVERITIES

    issue = RawIssue(
        file="main.c",
        line=1,
        severity=token or "",
        rule_id="weird-rule",
        message="?",
        extra={"metaSeverity": "whatever"},
    )
    assert normalizer.map_severity(token, issue) in SEVERITIES


@pytest.mark.parametrize(
    "text, cwe, expected",
    [
        ("strcpy is vulnerable to overrun", None, "Security"),
        ("dangerous function", "CWE-676", "Security"),
        ("memory leak of p", None, "Memory Safety"),
        ("something unusual", None, "Static Analysis"),
    ],
)
def test_classify_issue_type(text, cwe, expected):
    assert classify_issue_type(text, cwe) == expected
