import pytest

from site_config import load_site_config
from validate_posts import main, validate_post, validate_posts


def check(site_builder, filename, **kwargs):
    path = site_builder.post(filename, **kwargs)
    return validate_post(path, load_site_config(site_builder.root))


def test_valid_post(site_builder):
    body = "\nSee [distopia][d] and [Highway][].\n\n[d]: https://github.com/MDAnalysis/distopia\n[highway]: https://github.com/google/highway\n"
    errors, warnings, post = check(site_builder, "2023-01-18-distopia.md", body=body)
    assert errors == []
    assert warnings == []
    assert post.slug == "distopia"


@pytest.mark.parametrize("filename, message", [
    ("distopia.md", "filename must look like YYYY-MM-DD-slug.md"),
    ("2023-02-30-distopia.md", "invalid date 2023-02-30"),
])
def test_bad_filenames(site_builder, filename, message):
    errors, _, post = check(site_builder, filename)
    assert post is None
    assert any(message in e for e in errors)
    assert errors[0].startswith(f"[{filename}]")


def test_missing_front_matter(site_builder):
    errors, _, _ = check(site_builder, "2023-01-18-distopia.md", raw="# No front matter\n")
    assert errors == ["[2023-01-18-distopia.md] line 1: missing front matter (file must start with '---')"]


def test_invalid_yaml_reports_line(site_builder):
    errors, _, _ = check(site_builder, "2023-01-18-distopia.md", front_matter="layout: post\ntitle: [unclosed\n")
    assert len(errors) == 1
    assert "invalid YAML" in errors[0]
    assert " line " in errors[0]


def test_missing_title_and_unknown_layout(site_builder):
    errors, _, post = check(site_builder, "2023-01-18-distopia.md", front_matter="layout: fancy\ntitle: ''\n")
    assert post is None
    assert "[2023-01-18-distopia.md] Missing or empty 'title'" in errors
    assert "[2023-01-18-distopia.md] Unknown layout 'fancy' (no _layouts/fancy.html)" in errors


def test_missing_layout(site_builder):
    errors, _, _ = check(site_builder, "2023-01-18-distopia.md", front_matter="title: Hi\n")
    assert errors == ["[2023-01-18-distopia.md] Missing 'layout'"]


def test_unresolved_reference_is_an_error_with_file_line(site_builder):
    body = "\nIntro.\n\nSee [the docs][docs].\n"
    errors, _, _ = check(site_builder, "2023-01-18-distopia.md", body=body)
    # two front matter lines + delimiters put the body at line 5
    assert errors == ["[2023-01-18-distopia.md] line 8: unresolved link label 'docs' in [the docs][docs]"]


def test_unused_and_duplicate_definitions_warn(site_builder):
    body = "\n[a][x]\n\n[x]: https://one.example\n[X]: https://two.example\n[spare]: https://three.example\n"
    errors, warnings, _ = check(site_builder, "2023-01-18-distopia.md", body=body)
    assert errors == []
    assert any("'spare' is never used" in w for w in warnings)
    assert any("'X' is defined more than once" in w for w in warnings)


def test_unbalanced_math(site_builder):
    errors, _, _ = check(site_builder, "2023-01-18-distopia.md", body="\nEnergy $$E = mc^2\n")
    assert len(errors) == 1
    assert errors[0].startswith("[2023-01-18-distopia.md] line 6:")


def test_date_mismatch_and_slug_style_warn(site_builder):
    errors, warnings, _ = check(
        site_builder, "2023-01-18-Distopia_Launch.md",
        front_matter="layout: post\ntitle: Hi\ndate: 2023-01-19\n",
    )
    assert errors == []
    assert any("slug 'Distopia_Launch' is not lowercase-with-hyphens" in w for w in warnings)
    assert any("front matter date 2023-01-19 differs from filename date 2023-01-18" in w for w in warnings)


def test_duplicate_permalinks_across_posts(site_builder):
    site_builder.post("2023-01-18-one.md", front_matter="layout: post\ntitle: One\npermalink: /same/\n")
    site_builder.post("2023-01-19-two.md", front_matter="layout: post\ntitle: Two\npermalink: /same/\n")
    site_builder.post("2023-01-20-three.md")
    errors, _, status = validate_posts(load_site_config(site_builder.root))
    assert errors == [
        "[2023-01-18-one.md] permalink /same/ is also used by 2023-01-19-two.md",
        "[2023-01-19-two.md] permalink /same/ is also used by 2023-01-18-one.md",
    ]
    assert status["2023-01-20-three.md"] == ([], [])


def test_single_post_still_sees_clashes(site_builder):
    site_builder.post("2023-01-18-one.md", front_matter="layout: post\ntitle: One\npermalink: /same/\n")
    site_builder.post("2023-01-19-two.md", front_matter="layout: post\ntitle: Two\npermalink: /same/\n")
    errors, _, status = validate_posts(load_site_config(site_builder.root), only="2023-01-19-two.md")
    assert list(status) == ["2023-01-19-two.md"]
    assert errors == ["[2023-01-19-two.md] permalink /same/ is also used by 2023-01-18-one.md"]


# =============================================================================
# CLI
# =============================================================================

def run_main(monkeypatch, *args):
    monkeypatch.setattr("sys.argv", ["validate_posts.py", *args])
    with pytest.raises(SystemExit) as exc:
        main()
    return exc.value.code


def test_main_passes_with_warnings(site_builder, monkeypatch, capsys):
    site_builder.post("2023-01-18-distopia.md", body="\n[spare]: https://example.org\n")
    assert run_main(monkeypatch, "--root", str(site_builder.root)) == 0
    out = capsys.readouterr().out
    assert "✓ 2023-01-18-distopia.md" in out
    assert "ALL VALIDATIONS PASSED (1 warnings)" in out


def test_main_strict_fails_on_warnings(site_builder, monkeypatch, capsys):
    site_builder.post("2023-01-18-distopia.md", body="\n[spare]: https://example.org\n")
    assert run_main(monkeypatch, "--root", str(site_builder.root), "--strict") == 1
    assert "⚠ 2023-01-18-distopia.md: 0 errors, 1 warnings" in capsys.readouterr().out


def test_main_fails_on_errors(site_builder, monkeypatch, capsys):
    site_builder.post("2023-01-18-distopia.md", body="\n[a][missing]\n")
    assert run_main(monkeypatch, "--root", str(site_builder.root)) == 1
    assert "VALIDATION FAILED: 1 errors" in capsys.readouterr().out


def test_main_unknown_post(site_builder, monkeypatch, capsys):
    assert run_main(monkeypatch, "--root", str(site_builder.root), "--post", "nope.md") == 1
    assert "No such post" in capsys.readouterr().out


def test_bracket_indexing_in_math_is_valid(site_builder):
    errors, warnings, _ = check(site_builder, "2023-01-18-matrix.md", body="\nThe element is $$A[i][j]$$ here.\n")
    assert errors == []
    assert warnings == []


def test_non_utf8_post_is_reported(site_builder):
    path = site_builder.root / "_posts" / "2023-01-18-latin1.md"
    path.write_bytes(b"---\nlayout: post\ntitle: Caf\xe9\n---\n")
    errors, _, post = validate_post(path, load_site_config(site_builder.root))
    assert post is None
    assert len(errors) == 1
    assert errors[0].startswith("[2023-01-18-latin1.md] file is not valid UTF-8")
