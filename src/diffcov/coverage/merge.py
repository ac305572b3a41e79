"""Coverage record merging with max-hit semantics.

Several executions of the same compiled class (parallel test shards, more
than one test suite) produce records with the same name and class id.  They
are merged per line and per method:

- covered[i] = max(covered[i] across all records)
- missed[i] = max(total[i]) - covered[i]
- method hits = max(hits across all records)

so the merged record means "covered in any run".
"""

from collections.abc import Iterable

from diffcov.coverage.models import CoverageRecord, LineCoverage, MethodCoverage


def merge_line_coverage(lines: Iterable[LineCoverage]) -> LineCoverage:
    """Merge counters recorded for the same line."""
    lines_list = list(lines)
    if not lines_list:
        raise ValueError("Cannot merge empty line coverage list")

    covered_instructions = max(lc.covered_instructions for lc in lines_list)
    total_instructions = max(lc.missed_instructions + lc.covered_instructions for lc in lines_list)
    covered_branches = max(lc.covered_branches for lc in lines_list)
    total_branches = max(lc.missed_branches + lc.covered_branches for lc in lines_list)

    return LineCoverage(
        line=lines_list[0].line,
        missed_instructions=total_instructions - covered_instructions,
        covered_instructions=covered_instructions,
        missed_branches=total_branches - covered_branches,
        covered_branches=covered_branches,
    )


def merge_records(records: Iterable[CoverageRecord]) -> CoverageRecord:
    """Merge records of one compiled class.

    Args:
        records: Records sharing one name and one class id.

    Returns:
        Merged record with max hits across all inputs.

    Raises:
        ValueError: If the list is empty or the identities differ.
    """
    records_list = list(records)
    if not records_list:
        raise ValueError("Cannot merge empty coverage record list")
    if len(records_list) == 1:
        return records_list[0]

    first = records_list[0]
    for record in records_list[1:]:
        if record.name != first.name or record.class_id != first.class_id:
            raise ValueError(
                f"Cannot merge {record.name} ({record.class_id}) into "
                f"{first.name} ({first.class_id})"
            )

    # Merge line coverage
    lines_by_nr: dict[int, list[LineCoverage]] = {}
    for record in records_list:
        for nr, lc in record.lines.items():
            lines_by_nr.setdefault(nr, []).append(lc)
    merged_lines = {nr: merge_line_coverage(group) for nr, group in sorted(lines_by_nr.items())}

    # Merge method coverage - keyed by (name, desc)
    method_data: dict[tuple[str, str], tuple[int, int]] = {}  # -> (line, max_hits)
    for record in records_list:
        for method in record.methods:
            key = (method.name, method.desc)
            if key in method_data:
                line, hits = method_data[key]
                method_data[key] = (line or method.line, max(hits, method.hits))
            else:
                method_data[key] = (method.line, method.hits)

    merged_methods = tuple(
        MethodCoverage(name=name, desc=desc, line=line, hits=hits)
        for (name, desc), (line, hits) in method_data.items()
    )

    source_file_name = next(
        (r.source_file_name for r in records_list if r.source_file_name), None
    )
    return CoverageRecord(
        name=first.name,
        class_id=first.class_id,
        source_file_name=source_file_name,
        lines=merged_lines,
        methods=merged_methods,
    )
