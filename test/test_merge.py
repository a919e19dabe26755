# test/test_merge.py
import logging

import pytest
from rdflib import BNode, Graph, URIRef

from rdfmerge.errors import ConfigurationError
from rdfmerge.merge import MergeConfig, collect_prolog, count_quads, main, merge_sources, run
from rdfmerge.prefixes import Prolog
from rdfmerge.split_writer import SplitWriter

A_TTL = """\
@base <http://a/> .
@prefix ex: <http://ex.org/> .
<s> ex:p _:x .
_:x ex:q "1" .
<s> ex:r "a" .
"""

B_TTL = """\
@base <http://b/> .
@prefix ex: <http://other.org/> .
<t> ex:p _:x .
_:x ex:q "2" .
"""

NT = """\
# first source
<http://ex.org/s1> <http://ex.org/p> "1" .
<http://ex.org/s2> <http://ex.org/p> "2" .
<http://ex.org/s3> <http://ex.org/p> "3" .
"""


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def two_sources(tmp_path):
    a = write(tmp_path / "in" / "a.ttl", A_TTL)
    b = write(tmp_path / "in" / "b.ttl", B_TTL)
    return a, b


def test_prolog_of_two_sources(two_sources):
    prolog = collect_prolog(two_sources)
    assert prolog.base == "http://a/"
    assert prolog.prefixes == {
        "ex": "http://ex.org/",
        "basens2": "http://b/",
        "ex2": "http://other.org/",
    }


def test_merge_of_two_sources(tmp_path, two_sources):
    out = tmp_path / "out.ttl"
    status = run(MergeConfig(inputs=(str(tmp_path / "in"),), output=str(out), pretty=False))
    assert status == 0

    text = out.read_text(encoding="utf-8")
    assert text.startswith(
        "@base <http://a/> .\n"
        "@prefix ex: <http://ex.org/> .\n"
        "@prefix basens2: <http://b/> .\n"
        "@prefix ex2: <http://other.org/> .\n"
    )
    assert "_:b1_x" in text
    assert "_:b2_x" in text

    graph = Graph().parse(out, format="turtle")
    assert len(graph) == 5
    assert len({o for o in graph.objects() if isinstance(o, BNode)}) == 2
    assert (URIRef("http://b/t"), URIRef("http://other.org/p"), None) in graph


def test_pretty_output_round_trips(tmp_path, two_sources):
    out = tmp_path / "out.ttl"
    assert run(MergeConfig(inputs=tuple(map(str, two_sources)), output=str(out))) == 0
    graph = Graph().parse(out, format="turtle")
    assert len(graph) == 5
    assert dict(graph.namespaces())["ex2"] == URIRef("http://other.org/")


def test_blank_nodes_are_renamed_per_source(tmp_path, two_sources):
    out = tmp_path / "out.nt"
    writer = SplitWriter(out, Prolog())
    try:
        results = merge_sources(two_sources, writer)
    finally:
        writer.close()
    assert [stats.index for stats in results] == [1, 2]
    assert [stats.count for stats in results] == [3, 2]
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "<http://a/s> <http://ex.org/p> _:b1_x ."
    assert lines[3].startswith("<http://b/t> <http://other.org/p> _:b2_x")


def test_single_input_is_only_counted(tmp_path, caplog):
    source = write(tmp_path / "a.ttl", A_TTL)
    before = sorted(tmp_path.iterdir())
    with caplog.at_level(logging.INFO, logger="rdfmerge"):
        assert main([str(source)]) == 0
    assert sorted(tmp_path.iterdir()) == before
    assert "Read 3 statements" in caplog.text


def test_count_reports_partial_reads(tmp_path):
    source = write(tmp_path / "bad.nt", NT + "garbage\n")
    stats = count_quads(source)
    assert stats.count == 3
    assert stats.error is not None
    assert main([str(source)]) == 1


def test_split_across_files(tmp_path):
    write(tmp_path / "in" / "a.nt", NT)
    write(tmp_path / "in" / "b.nt", NT.replace("ex.org/s", "ex.org/t"))
    out = tmp_path / "out" / "merged.nt"
    assert main(["--split", "4", str(tmp_path / "in"), str(out)]) == 0

    parts = [tmp_path / "out" / f"merged-{n}.nt" for n in (1, 2)]
    assert sorted((tmp_path / "out").iterdir()) == parts
    counts = [len(Graph().parse(part, format="nt")) for part in parts]
    assert counts == [4, 2]
    # comments travel with the statements they precede
    assert parts[0].read_text(encoding="utf-8").startswith("# first source\n")


def test_failing_source_is_skipped(tmp_path, caplog):
    write(tmp_path / "in" / "a.nt", NT)
    write(tmp_path / "in" / "b.ttl", "@prefix ex: <http://ex.org/> .\nex:s ex:p ex:o .\nex:s ex:p .\n")
    write(tmp_path / "in" / "c.nt", NT.replace("ex.org/s", "ex.org/t"))
    out = tmp_path / "out.nt"
    with caplog.at_level(logging.INFO, logger="rdfmerge"):
        assert main([str(tmp_path / "in"), str(out)]) == 0
    assert "Couldn't read triples from" in caplog.text
    # the statement b.ttl produced before failing is kept
    assert len(Graph().parse(out, format="nt")) == 7


def test_output_inside_an_input_directory_is_not_read(tmp_path):
    write(tmp_path / "a.nt", NT)
    out = write(tmp_path / "out.nt", NT.replace("ex.org/s", "ex.org/old"))
    assert main([str(tmp_path), str(out)]) == 0
    assert len(Graph().parse(out, format="nt")) == 3


def test_unwritable_output_format(tmp_path):
    write(tmp_path / "a.nt", NT)
    assert main([str(tmp_path / "a.nt"), str(tmp_path / "out.unknown")]) == 1
    assert not (tmp_path / "out.unknown").exists()


def test_output_format_override(tmp_path):
    write(tmp_path / "a.nt", NT)
    out = tmp_path / "out.data"
    assert main(["--output-format", "nquads", str(tmp_path / "a.nt"), str(out)]) == 0
    assert len(out.read_text(encoding="utf-8").splitlines()) == 4


@pytest.mark.parametrize(
    "argv",
    [
        ["--split", "0", "a.nt", "out.nt"],
        ["--input-format", "json-ld", "a.nt", "out.nt"],
        ["--output-format", "no-such-format", "a.nt", "out.nt"],
    ],
)
def test_invalid_configuration_exits_1(argv):
    assert main(argv) == 1


def test_usage_errors_exit_2():
    with pytest.raises(SystemExit) as err:
        main([])
    assert err.value.code == 2


def test_validate():
    config = MergeConfig(inputs=("a.ttl",), output="out.ttl", split=2, input_format="ttl", output_format="xml")
    assert config.validate() is config
    with pytest.raises(ConfigurationError):
        MergeConfig(inputs=(), output="out.ttl", split=-1).validate()


def test_same_prefix_from_turtle_and_rdfxml_is_one_binding(tmp_path):
    a = write(tmp_path / "a.ttl", "@base <http://a/> .\n@prefix ex: <http://ex.org/> .\nex:s ex:p ex:o .\n")
    b = write(
        tmp_path / "b.rdf",
        '<?xml version="1.0"?>\n'
        '<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#" xmlns:ex="http://ex.org/">\n'
        '  <rdf:Description rdf:about="http://ex.org/t"><ex:p>v</ex:p></rdf:Description>\n'
        "</rdf:RDF>\n",
    )
    prolog = collect_prolog([a, b])
    assert [prefix for prefix in prolog.prefixes if prefix.startswith("ex")] == ["ex"]
    assert prolog.prefixes["ex"] == "http://ex.org/"
    assert all(type(ns) is str for ns in prolog.prefixes.values())
    assert type(prolog.base) is str


def test_pretty_turtle_keeps_blank_nodes_apart_without_labels(tmp_path, two_sources):
    out = tmp_path / "out.ttl"
    assert run(MergeConfig(inputs=tuple(map(str, two_sources)), output=str(out))) == 0
    graph = Graph().parse(out, format="turtle")
    assert len({o for o in graph.objects() if isinstance(o, BNode)}) == 2
    assert "b1_x" not in out.read_text(encoding="utf-8")


def test_buffered_output_writes_repeated_statements_once(tmp_path):
    write(tmp_path / "in" / "a.nt", NT)
    write(tmp_path / "in" / "b.nt", NT)
    out = tmp_path / "out.ttl"
    writer = SplitWriter(out, Prolog())
    try:
        merge_sources(sorted((tmp_path / "in").iterdir()), writer)
    finally:
        writer.close()
    assert writer.total == 6
    assert len(Graph().parse(out, format="turtle")) == 3
