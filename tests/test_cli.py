"""End-to-end tests of the command-line interface."""

from __future__ import annotations

import json

import pytest

from assayvocab.cli.args import create_parser
from assayvocab.cli.main import main
from assayvocab.config import ENV_AXIOMS, ENV_DEFAULT_TEMPLATE, ENV_ONTOLOGY, ENV_PROVISIONAL, ENV_TEMPLATES

from .helpers import BRANCH_TEMPLATE_JSON, COMMON_TEMPLATE_JSON, build_ontology

OBO = """format-version: 1.2

[Term]
id: GO:0000001
name: top

[Term]
id: GO:0000002
name: lower
is_a: GO:0000001 ! top
"""

RULES = [
    {
        "type": "limit",
        "subject": {"valueURI": "bao:BAO_0000006"},
        "impact": {"valueURI": "bao:BAO_0000003", "propURI": "bao:BAX_0000001"},
    }
]

ASSAY = {
    "assayID": 7,
    "annotations": [
        {"propURI": "bao:BAX_0000002", "valueURI": "bao:BAO_0000006"},
        {"propURI": "bao:BAX_0000001", "valueURI": "bao:BAO_0000004"},
    ],
}


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    return excinfo.value.code


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (ENV_ONTOLOGY, ENV_TEMPLATES, ENV_DEFAULT_TEMPLATE, ENV_AXIOMS, ENV_PROVISIONAL):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("assayvocab.config.load_dotenv", lambda *a, **kw: False)


@pytest.fixture
def data_dir(tmp_path):
    build_ontology().save(tmp_path / "vocab.bin")
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "common.json").write_text(json.dumps(COMMON_TEMPLATE_JSON))
    (templates / "branch.json").write_text(json.dumps(BRANCH_TEMPLATE_JSON))
    axioms = tmp_path / "axioms"
    axioms.mkdir()
    (axioms / "rules.json").write_text(json.dumps(RULES))
    (tmp_path / "assays.jsonl").write_text(json.dumps(ASSAY) + "\n")
    return tmp_path


def _common_args(data_dir) -> list[str]:
    return [
        "--ontology",
        str(data_dir / "vocab.bin"),
        "--templates",
        str(data_dir / "templates"),
        "--default-template",
        "bas:CommonTemplate",
        "--axioms",
        str(data_dir / "axioms"),
    ]


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_group_repeatable(self):
        args = create_parser().parse_args(["tree", "--prop", "p", "--group", "a", "--group", "b"])
        assert args.group == ["a", "b"]
        assert not args.json


class TestCommands:
    def test_build_ontology(self, tmp_path, capsys):
        obo = tmp_path / "mini.obo"
        obo.write_text(OBO)
        output = tmp_path / "out.bin.gz"
        assert _run(["build-ontology", str(obo), "-o", str(output)]) == 0
        assert output.exists()
        assert "Wrote 2 terms" in capsys.readouterr().out

    def test_tree(self, data_dir, capsys):
        assert _run([*_common_args(data_dir), "tree", "--prop", "bao:BAX_0000001"]) == 0
        out = capsys.readouterr().out.splitlines()
        assert out[0] == "alpha <bao:BAO_0000002>"
        assert "    delta <bao:BAO_0000005>" in out

    def test_tree_json(self, data_dir, capsys):
        argv = [*_common_args(data_dir), "tree", "--prop", "bao:BAX_0000062", "--group", "bao:BAX_0000034", "--json"]
        assert _run(argv) == 0
        nodes = json.loads(capsys.readouterr().out)
        assert [n["label"] for n in nodes] == ["separate", "separate child"]

    def test_tree_unknown_assignment(self, data_dir, capsys):
        assert _run([*_common_args(data_dir), "tree", "--prop", "bao:BAX_0009999"]) == 1
        assert "No assignment" in capsys.readouterr().err

    def test_winnow(self, data_dir, capsys):
        assays = str(data_dir / "assays.jsonl")
        argv = [*_common_args(data_dir), "winnow", "--assay", assays, "--prop", "bao:BAX_0000001"]
        assert _run(argv) == 0
        out = capsys.readouterr().out
        assert "bao:BAO_0000003\tbeta" in out
        assert "bao:BAO_0000004" not in out

    def test_check_axioms(self, data_dir):
        report = data_dir / "report.json"
        argv = [*_common_args(data_dir), "check-axioms", "--assays", str(data_dir / "assays.jsonl"), "-o", str(report)]
        assert _run(argv) == 1
        data = json.loads(report.read_text())
        assert data[0]["assayID"] == "7"
        violation = data[0]["violations"][0]
        assert violation["valueURI"].endswith("BAO_0000004")
        assert violation["triggers"][0].endswith("BAO_0000006")

    def test_axioms_listing(self, data_dir, capsys):
        assert _run([*_common_args(data_dir), "axioms"]) == 0
        assert capsys.readouterr().out.startswith("LIMIT type axiom")

    def test_axioms_dump_with_labels(self, data_dir, capsys):
        assert _run([*_common_args(data_dir), "axioms", "--dump", "--labels"]) == 0
        rules = json.loads(capsys.readouterr().out)
        assert rules[0]["subject"]["label"] == "subject"

    def test_missing_ontology(self, tmp_path, capsys):
        assert _run(["--ontology", str(tmp_path / "nope.bin"), "tree", "--prop", "x"]) == 1
        assert "Error" in capsys.readouterr().err
