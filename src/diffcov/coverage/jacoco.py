"""JaCoCo XML report loader.

Turns a JaCoCo XML report into one ``CoverageRecord`` per compiled class.

Structure:
<report name="...">
  <package name="com/example">
    <class name="com/example/Foo" sourcefilename="Foo.java">
      <method name="bar" desc="()V" line="10">
        <counter type="METHOD" missed="0" covered="1"/>
      </method>
    </class>
    <class name="com/example/Foo$Inner" sourcefilename="Foo.java">...</class>
    <sourcefile name="Foo.java">
      <line nr="10" mi="0" ci="3" mb="0" cb="0"/>
    </sourcefile>
  </package>
</report>

Per-line data is recorded per source file, not per class.  When several
classes share a source file, each line goes to the class owning the nearest
method starting at or before it (the primary class for lines above the first
method).
"""

import bisect
import hashlib
import xml.etree.ElementTree as ET
from pathlib import Path, PurePosixPath

import structlog

from diffcov.coverage.models import (
    CoverageParseError,
    CoverageRecord,
    LineCoverage,
    MethodCoverage,
)

log = structlog.get_logger(__name__)

_REPORT_NAMES = ("jacoco.xml", "jacocoTestReport.xml")


def load_jacoco_xml(path: Path | str) -> list[CoverageRecord]:
    """Load every class of a JaCoCo XML report.

    Args:
        path: Report file, or a directory holding ``jacoco.xml`` (Maven's
              ``site/jacoco`` and Gradle layouts are searched too).

    Returns:
        Records in report order.

    Raises:
        CoverageParseError: If the report is missing or malformed.
    """
    path = Path(path)
    if not path.exists():
        raise CoverageParseError(f"JaCoCo path not found: {path}")

    xml_file = _find_xml_file(path)
    try:
        tree = ET.parse(xml_file)
    except ET.ParseError as e:
        raise CoverageParseError(f"Invalid JaCoCo XML: {e}") from e

    root = tree.getroot()
    if root.tag != "report":
        raise CoverageParseError(f"Not a JaCoCo report: root element is <{root.tag}>")

    records: list[CoverageRecord] = []
    for package in root.iter("package"):
        records.extend(_parse_package(package))

    log.debug("jacoco_loaded", path=str(xml_file), classes=len(records))
    return records


def _find_xml_file(path: Path) -> Path:
    if path.is_file():
        return path

    for name in _REPORT_NAMES:
        candidate = path / name
        if candidate.exists():
            return candidate

    # Maven structure
    maven_path = path / "site" / "jacoco" / "jacoco.xml"
    if maven_path.exists():
        return maven_path

    # Gradle structure
    gradle_paths = sorted(path.glob("**/jacoco*.xml"))
    if gradle_paths:
        return gradle_paths[0]

    raise CoverageParseError(f"No JaCoCo XML found in {path}")


def _parse_package(package: ET.Element) -> list[CoverageRecord]:
    parsed: list[tuple[str, str | None, tuple[MethodCoverage, ...]]] = []
    for cls in package.findall("class"):
        name = cls.get("name", "")
        if not name:
            raise CoverageParseError("JaCoCo <class> element without a name")
        methods = tuple(_parse_method(m) for m in cls.findall("method"))
        parsed.append((name, cls.get("sourcefilename") or None, methods))

    source_lines: dict[str, dict[int, LineCoverage]] = {}
    for sourcefile in package.findall("sourcefile"):
        filename = sourcefile.get("name", "")
        if filename:
            source_lines[filename] = {
                lc.line: lc for lc in (_parse_line(el) for el in sourcefile.findall("line"))
            }

    class_lines = _assign_lines(parsed, source_lines)

    return [
        CoverageRecord(
            name=name,
            class_id=_class_id(name, methods),
            source_file_name=source,
            lines=class_lines.get(name, {}),
            methods=methods,
        )
        for name, source, methods in parsed
    ]


def _assign_lines(
    classes: list[tuple[str, str | None, tuple[MethodCoverage, ...]]],
    source_lines: dict[str, dict[int, LineCoverage]],
) -> dict[str, dict[int, LineCoverage]]:
    """Split each source file's lines between the classes compiled from it."""
    by_source: dict[str, list[tuple[str, tuple[MethodCoverage, ...]]]] = {}
    for name, source, methods in classes:
        if source is not None:
            by_source.setdefault(source, []).append((name, methods))

    result: dict[str, dict[int, LineCoverage]] = {}
    for source, members in by_source.items():
        lines = source_lines.get(source, {})
        if len(members) == 1:
            result[members[0][0]] = dict(lines)
            continue

        stem = PurePosixPath(source).stem
        primary = next(
            (name for name, _ in members if name.rpartition("/")[2] == stem), members[0][0]
        )
        starts = sorted(
            (m.line, name) for name, methods in members for m in methods if m.line > 0
        )
        start_lines = [line for line, _ in starts]

        for name, _ in members:
            result[name] = {}
        for nr, lc in sorted(lines.items()):
            idx = bisect.bisect_right(start_lines, nr) - 1
            owner = starts[idx][1] if idx >= 0 else primary
            result[owner][nr] = lc
    return result


def _parse_method(method: ET.Element) -> MethodCoverage:
    counter = method.find("counter[@type='METHOD']")
    hits = _int(counter, "covered") if counter is not None else 0
    return MethodCoverage(
        name=method.get("name", ""),
        desc=method.get("desc", ""),
        line=_int(method, "line"),
        hits=hits,
    )


def _parse_line(line: ET.Element) -> LineCoverage:
    return LineCoverage(
        line=_int(line, "nr"),
        missed_instructions=_int(line, "mi"),
        covered_instructions=_int(line, "ci"),
        missed_branches=_int(line, "mb"),
        covered_branches=_int(line, "cb"),
    )


def _int(element: ET.Element, attr: str) -> int:
    raw = element.get(attr, "0")
    try:
        return int(raw)
    except ValueError as e:
        raise CoverageParseError(f"Invalid {attr}={raw!r} on <{element.tag}>") from e


def _class_id(name: str, methods: tuple[MethodCoverage, ...]) -> str:
    """Identity of the compiled form: name plus method name/descriptor/line triples."""
    parts = [name.replace("/", ".")]
    parts.extend(f"{m.name}{m.desc}@{m.line}" for m in methods)
    return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()[:16]
