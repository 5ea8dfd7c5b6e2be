"""Tests for packing a generated tree into one file and restoring it."""

import pytest
from ezdb_solution.packer import END_MARKER, START_MARKER, pack_project, unpack_project


@pytest.fixture
def project_tree(tmp_path):
    root = tmp_path / "src"
    (root / "DAL" / "Sales" / "Models").mkdir(parents=True)
    (root / "DAL" / "Sales" / "Acme.DAL.Sales.csproj").write_text("<Project />\n", encoding="utf-8")
    (root / "DAL" / "Sales" / "Models" / "Orders.cs").write_text("class Orders {}", encoding="utf-8")
    (root / "appsettings.json").write_text("{}\n", encoding="utf-8")
    (root / "README.md").write_text("skip me\n", encoding="utf-8")
    (root / "bin").mkdir()
    (root / "bin" / "x.dll").write_bytes(b"\x00\x01")
    return root


def test_pack_frames_each_file(project_tree, tmp_path):
    out = tmp_path / "packed.txt"
    packed = pack_project(project_tree, out)

    assert packed == [
        "DAL/Sales/Acme.DAL.Sales.csproj",
        "DAL/Sales/Models/Orders.cs",
        "appsettings.json",
    ]
    text = out.read_text(encoding="utf-8")
    assert f"{START_MARKER} DAL/Sales/Models/Orders.cs\nclass Orders {{}}\n{END_MARKER}\n" in text
    assert "README" not in text


def test_unpack_restores_files(project_tree, tmp_path):
    out = tmp_path / "packed.txt"
    pack_project(project_tree, out)

    target = tmp_path / "restored"
    written = unpack_project(out, target)

    assert len(written) == 3
    assert (target / "DAL" / "Sales" / "Acme.DAL.Sales.csproj").read_text(encoding="utf-8") == "<Project />\n"
    assert (target / "DAL" / "Sales" / "Models" / "Orders.cs").read_text(encoding="utf-8") == "class Orders {}\n"
    assert (target / "appsettings.json").read_text(encoding="utf-8") == "{}\n"


def test_pack_skips_output_inside_tree(project_tree):
    out = project_tree / "bundle.json"
    packed = pack_project(project_tree, out)
    assert "bundle.json" not in packed


def test_pack_missing_directory(tmp_path):
    with pytest.raises(NotADirectoryError):
        pack_project(tmp_path / "nope", tmp_path / "out.txt")


def test_unpack_refuses_traversal(tmp_path):
    packed = tmp_path / "evil.txt"
    packed.write_text(f"{START_MARKER} ../../etc/passwd\nroot\n{END_MARKER}\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Path traversal"):
        unpack_project(packed, tmp_path / "target")


def test_unpack_unterminated_block(tmp_path):
    packed = tmp_path / "cut.txt"
    packed.write_text(f"{START_MARKER} a.cs\nclass A {{}}\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Unterminated"):
        unpack_project(packed, tmp_path / "target")
