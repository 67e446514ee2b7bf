"""Tests for the file runner, rule files, the CLI and configuration."""

import json

import pytest

from jsondelta import ArrayStrategy, ChangeKind, DiffRunner, ParseError, load_config, load_options
from jsondelta.cli import EXIT_CHANGES, EXIT_ERROR, EXIT_NO_CHANGES, main
from jsondelta.models import LogLevel
from jsondelta.runner import load_document, parse_options, resolve_callable

RULES = """
arrayStrategy: keyed
arrayKeyPath: id
ignoreRules:
  - id: ts
    type: glob
    pattern: "*.updatedAt"
transformRules:
  - id: as-text
    type: custom
    targetPath: "*.code"
    options:
      transform: "builtins:str"
"""


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestLoadOptions:
    """Test loading rule files."""

    def test_yaml_rules(self, tmp_path):
        rules = tmp_path / "rules.yaml"
        rules.write_text(RULES, encoding="utf-8")

        options = load_options(rules)

        assert options.array_strategy == ArrayStrategy.KEYED
        assert options.array_key_path == "id"
        assert options.ignore_rules[0].pattern == "*.updatedAt"
        assert options.transform_rules[0].options["transform"] is str

    def test_json_rules(self, tmp_path):
        rules = tmp_path / "rules.json"
        rules.write_text(json.dumps({"ignoreRules": [{"id": "a", "pattern": "a"}]}), encoding="utf-8")
        assert load_options(rules).ignore_rules[0].pattern == "a"

    def test_empty_file_gives_defaults(self, tmp_path):
        rules = tmp_path / "rules.yaml"
        rules.write_text("", encoding="utf-8")
        assert load_options(rules).array_strategy == ArrayStrategy.INDEX

    def test_unknown_rule_type(self, tmp_path):
        rules = tmp_path / "rules.yaml"
        rules.write_text("transformRules:\n  - id: x\n    type: bogus\n", encoding="utf-8")
        with pytest.raises(ParseError) as exc_info:
            load_options(rules)
        assert exc_info.value.source == str(rules)

    def test_malformed_yaml(self, tmp_path):
        rules = tmp_path / "rules.yaml"
        rules.write_text("ignoreRules: [unclosed\n", encoding="utf-8")
        with pytest.raises(ParseError):
            load_options(rules)

    def test_not_a_mapping(self):
        with pytest.raises(ParseError):
            parse_options(["a"])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_options(tmp_path / "absent.yaml")


class TestResolveCallable:
    """Test callable references in rule files."""

    def test_resolves_nested_attribute(self):
        assert resolve_callable("os.path:join") is __import__("os").path.join

    def test_bad_references(self):
        for ref in ("nocolon", "os:", "not_a_module_xyz:f", "os:missing_attr_xyz", "os:sep"):
            with pytest.raises(ParseError):
                resolve_callable(ref)


class TestDiffRunner:
    """Test diffing files from disk."""

    def test_diff_files_with_rules(self, tmp_path):
        rules = tmp_path / "rules.yaml"
        rules.write_text(RULES, encoding="utf-8")
        a = write_json(tmp_path / "a.json", [{"id": 1, "code": 7, "updatedAt": "x"}])
        b = write_json(tmp_path / "b.json", [{"id": 1, "code": "7", "updatedAt": "y"}])

        result = DiffRunner.run(a, b, rules)

        assert result.root.kind == ChangeKind.UNCHANGED
        assert result.version_a.startswith("v_")
        assert result.version_a != result.version_b

    def test_without_rules(self, tmp_path):
        a = write_json(tmp_path / "a.json", {"a": 1})
        b = write_json(tmp_path / "b.json", {"a": 2})
        runner = DiffRunner()

        assert runner.validate() == []
        assert runner.diff_files(a, b).root.find("a").kind == ChangeKind.MODIFIED

    def test_load_version(self, tmp_path):
        path = write_json(tmp_path / "doc.json", {"a": 1})
        version = DiffRunner().load_version(path)
        assert version.label == "doc.json"
        assert version.payload == {"a": 1}
        assert version.source.ref == path

    def test_malformed_document(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"a": ', encoding="utf-8")
        with pytest.raises(ParseError) as exc_info:
            load_document(path)
        assert exc_info.value.line == 1


class TestCli:
    """Test command line exit codes and output."""

    def test_no_changes(self, tmp_path, capsys):
        a = write_json(tmp_path / "a.json", {"a": 1})
        assert main([a, a]) == EXIT_NO_CHANGES
        assert "No changes" in capsys.readouterr().out

    def test_changes(self, tmp_path, capsys):
        a = write_json(tmp_path / "a.json", {"a": 1, "gone": True})
        b = write_json(tmp_path / "b.json", {"a": 2, "new": None})

        assert main([a, b]) == EXIT_CHANGES
        out = capsys.readouterr().out
        assert "~ a: 1 -> 2" in out
        assert "- gone: true" in out
        assert "+ new: null" in out

    def test_output_file(self, tmp_path):
        a = write_json(tmp_path / "a.json", [1])
        b = write_json(tmp_path / "b.json", [2])
        output = tmp_path / "diff.json"

        assert main([a, b, "-o", str(output), "-q"]) == EXIT_CHANGES
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["root"]["kind"] == "modified"

    def test_missing_document(self, tmp_path, capsys):
        a = write_json(tmp_path / "a.json", {})
        assert main([a, str(tmp_path / "absent.json")]) == EXIT_ERROR
        assert "not found" in capsys.readouterr().err

    def test_malformed_document(self, tmp_path, capsys):
        a = write_json(tmp_path / "a.json", {})
        bad = tmp_path / "bad.json"
        bad.write_text("{", encoding="utf-8")
        assert main([a, str(bad)]) == EXIT_ERROR
        assert "line 1" in capsys.readouterr().err

    def test_validate_only(self, tmp_path, capsys):
        a = write_json(tmp_path / "a.json", {})
        good = tmp_path / "good.yaml"
        good.write_text(RULES, encoding="utf-8")
        bad = tmp_path / "bad.yaml"
        bad.write_text("ignoreRules:\n  - id: r\n    type: regex\n    pattern: '(['\n", encoding="utf-8")

        assert main([a, a, "-r", str(good), "--validate-only"]) == EXIT_NO_CHANGES
        assert "Array strategy: Keyed" in capsys.readouterr().out
        assert main([a, a, "-r", str(bad), "--validate-only"]) == EXIT_ERROR
        assert "[ERROR]" in capsys.readouterr().err

    def test_suggest(self, tmp_path, capsys):
        a = write_json(tmp_path / "a.json", {"users": [{"id": 1}, {"id": 2}]})
        assert main([a, a, "--suggest"]) == EXIT_NO_CHANGES
        assert "users: keyed (key: id)" in capsys.readouterr().out


class TestConfig:
    """Test environment configuration."""

    def test_defaults(self, monkeypatch):
        for name in ("MAX_CONCURRENT_JOBS", "USE_ISOLATED", "LOG_LEVEL", "MAX_IN_THREAD_SIZE"):
            monkeypatch.delenv(f"JSONDELTA_{name}", raising=False)
        config = load_config()
        assert config.max_concurrent_jobs == 2
        assert config.use_isolated is True
        assert config.max_in_thread_size == 1024 * 1024
        assert config.log_level == LogLevel.INFO

    def test_overrides_are_clamped(self, monkeypatch):
        monkeypatch.setenv("JSONDELTA_MAX_CONCURRENT_JOBS", "0")
        monkeypatch.setenv("JSONDELTA_MAX_QUEUE_SIZE", "5000")
        monkeypatch.setenv("JSONDELTA_USE_ISOLATED", "no")
        config = load_config()
        assert config.max_concurrent_jobs == 1
        assert config.max_queue_size == 1000
        assert config.use_isolated is False

    def test_log_level(self, monkeypatch):
        monkeypatch.setenv("JSONDELTA_LOG_LEVEL", "warning")
        assert load_config().log_level == LogLevel.WARN
        monkeypatch.setenv("JSONDELTA_LOG_LEVEL", "loud")
        with pytest.raises(ValueError):
            load_config()
