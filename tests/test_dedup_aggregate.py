from codescanner.domain.models import AdapterResult, Summary
from codescanner.services.aggregate_service import AggregateService
from codescanner.services.dedup_service import FindingDeduplicator
from fakes import make_finding


def test_same_location_keeps_most_severe_and_records_tools():
    a = make_finding(tool="cppcheck", severity="medium", line=5, description="Buffer overrun")
    b = make_finding(tool="clangTidy", severity="high", line=5, description="Insecure strcpy")

    out = FindingDeduplicator().deduplicate([a, b])

    assert len(out) == 1
    f = out[0]
    assert f.tool == "clangTidy"
    assert f.severity == "high"
    assert f.metadata["detectedBy"] == ["cppcheck", "clangTidy"]
    assert f.metadata["duplicateCount"] == 2
    assert f.description == "Insecure strcpy [Detected by: cppcheck, clangTidy]"


def test_ties_keep_first_seen_and_inputs_are_untouched():
    a = make_finding(tool="semgrep", severity="high", line=5, description="first")
    b = make_finding(tool="snyk", severity="high", line=5, description="second")

    f = FindingDeduplicator().deduplicate([a, b])[0]

    assert f.tool == "semgrep"
    assert a.description == "first"
    assert "detectedBy" not in a.metadata


def test_different_lines_or_files_are_kept_apart():
    findings = [
        make_finding(line=5),
        make_finding(line=6),
        make_finding(path="lib/other.c", line=5),
    ]
    out = FindingDeduplicator().deduplicate(findings)
    assert len(out) == 3
    assert all(f.metadata["duplicateCount"] == 1 for f in out)
    assert all("[Detected by:" not in f.description for f in out)


def test_deduplication_is_idempotent():
    findings = [
        make_finding(tool="cppcheck", severity="low", line=5),
        make_finding(tool="semgrep", severity="critical", line=5),
        make_finding(tool="snyk", severity="medium", line=5),
        make_finding(tool="snyk", severity="medium", line=9),
    ]
    d = FindingDeduplicator()
    once = d.deduplicate(findings)
    twice = d.deduplicate(once)

    assert [f.to_dict() for f in twice] == [f.to_dict() for f in once]
    assert once[0].description.count("[Detected by:") == 1


def test_unlocated_warnings_in_one_file_stay_separate():
    unlocated = {"approximateLocation": True}
    findings = [
        make_finding(tool="clangStaticAnalyzer", line=1, description="analyzer warning: leak", metadata=dict(unlocated)),
        make_finding(tool="clangStaticAnalyzer", line=1, description="analyzer warning: null deref", metadata=dict(unlocated)),
        make_finding(tool="clangStaticAnalyzer", line=1, description="analyzer warning: leak", metadata=dict(unlocated)),
    ]
    out = FindingDeduplicator().deduplicate(findings)

    assert [f.metadata["duplicateCount"] for f in out] == [2, 1]
    assert FindingDeduplicator().deduplicate(out)[1].description == "analyzer warning: null deref"


def test_stats():
    before = [make_finding(line=1), make_finding(line=1), make_finding(line=2)]
    after = FindingDeduplicator().deduplicate(before)
    assert FindingDeduplicator.stats(before, after) == {"total": 3, "unique": 2, "merged": 1}


# ── aggregation ──────────────────────────────────────────────────
def test_aggregate_sums_adapter_summaries():
    results = [
        AdapterResult("cppcheck", summary=Summary.from_dict({"high": 2, "low": 1})),
        AdapterResult("semgrep", summary=Summary.from_dict({"critical": 1, "medium": 3})),
        AdapterResult.empty("snyk", error="snyk scan timed out after 10ms"),
    ]
    agg = AggregateService.aggregate(results)

    assert agg.issues_counts.to_dict() == {"total": 7, "critical": 1, "high": 2, "medium": 3, "low": 1}
    assert agg.scanner_breakdown["cppcheck"]["total"] == 3
    assert agg.scanner_breakdown["snyk"]["total"] == 0


def test_summarize_by_severity_type_and_tool():
    findings = [
        make_finding(tool="cppcheck", severity="high", type="Security"),
        make_finding(tool="cppcheck", severity="low", type="Code Quality", line=2),
        make_finding(tool="semgrep", severity="high", type="Security", line=3),
    ]
    s = AggregateService.summarize(findings)
    assert s["total"] == 3
    assert s["by_severity"] == {"critical": 0, "high": 2, "medium": 0, "low": 1}
    assert s["by_type"] == {"Security": 2, "Code Quality": 1}
    assert s["by_tool"] == {"cppcheck": 2, "semgrep": 1}
