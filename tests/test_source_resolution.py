"""Tests for source resolution and change-scope detection."""

from __future__ import annotations

from conftest import FakeRunner, make_grammar, submodule_line
from tsgrammars.config import BuildConfig
from tsgrammars.sources.changes import ChangeScopeDetector, affected_languages
from tsgrammars.sources.resolver import GrammarPath, SourceResolver, grammar_paths_for


def test_resolve_reads_url_and_revision(config: BuildConfig, runner: FakeRunner) -> None:
    checkout = make_grammar(config.sources_root / "foo")
    runner.on(
        "git",
        "config",
        "--file",
        ".gitmodules",
        "--get",
        "submodule.sources/foo.url",
        output="https://example.com/tree-sitter-foo\n",
    )
    runner.on("git", "submodule", "status", output=submodule_line(" ", "foo", "abcdef0123"))

    source = SourceResolver(config, runner).resolve("foo")

    assert source is not None
    assert source.checkout == checkout
    assert source.url == "https://example.com/tree-sitter-foo"
    assert source.revision == "abcdef0"
    assert source.grammar_paths == (GrammarPath("", "foo"),)
    assert source.grammar_dir(source.grammar_paths[0]) == checkout


def test_resolve_without_checkout_is_none(config: BuildConfig, runner: FakeRunner) -> None:
    assert SourceResolver(config, runner).resolve("missing") is None
    assert runner.calls == []


def test_missing_metadata_does_not_fail_resolution(
    config: BuildConfig, runner: FakeRunner
) -> None:
    make_grammar(config.sources_root / "foo")
    runner.on("git", "config", exit_code=1)

    source = SourceResolver(config, runner).resolve("foo")

    assert source is not None
    assert source.url is None
    assert source.revision is None


def test_multi_grammar_repositories() -> None:
    names = [g.output_name for g in grammar_paths_for("typescript")]
    assert names == ["typescript", "tsx"]
    assert [g.output_name for g in grammar_paths_for("ocaml")] == ["ocaml", "ocaml_interface"]
    assert grammar_paths_for("rust") == (GrammarPath("", "rust"),)


def test_affected_languages_from_sources_and_queries() -> None:
    paths = [
        "sources/foo/grammar.js",
        "queries/bar/highlights.scm",
        "sources/baz",
        "README.md",
        "bin/foo.so",
        "sources/",
    ]

    assert affected_languages(paths, "sources", "queries") == {"foo", "bar", "baz"}


def test_changed_languages_from_git_diff(config: BuildConfig, runner: FakeRunner) -> None:
    runner.on(
        "git",
        "diff",
        "--name-only",
        output="sources/foo/src/grammar.json\nqueries/bar/highlights.scm\nREADME.md\n",
    )

    changed = ChangeScopeDetector(config, runner).changed_languages("v1.0")

    assert changed == {"foo", "bar"}
    assert runner.commands("git")[-1] == ("git", "diff", "--name-only", "v1.0")


def test_default_base_revision(config: BuildConfig, runner: FakeRunner) -> None:
    ChangeScopeDetector(config, runner).changed_languages()

    assert runner.commands("git")[-1] == ("git", "diff", "--name-only", "origin/master")


def test_diff_failure_means_everything(config: BuildConfig, runner: FakeRunner) -> None:
    runner.on("git", "diff", exit_code=128, output="fatal: bad revision")

    assert ChangeScopeDetector(config, runner).changed_languages("nope") == set()
