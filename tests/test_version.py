from tyr import version


def test_peer_id_prefix():
    assert version.peer_id_prefix() == "-TY0000-"


def test_peer_id_prefix_uses_hex(monkeypatch):
    monkeypatch.setattr(version, "MAJOR", 10)
    prefix = version.peer_id_prefix()
    assert prefix.startswith("-TYa")
    assert len(prefix) == 8


def test_get_revision_prefers_build_value(monkeypatch):
    monkeypatch.setattr(version, "REVISION", "abc123")
    assert version.get_revision() == "abc123"
    assert "revision:   abc123" in version.print_info()


def test_tags_unknown():
    assert version.get_tags() == "unknown"


def test_print_info_layout():
    text = version.print_info()
    lines = text.splitlines()
    assert text == text.strip()
    assert [line.split(":", 1)[0] for line in lines] == [
        "ref",
        "revision",
        "build date",
        "platform",
        "build tags",
    ]
    assert f"platform:   {version.OS}/{version.ARCH}" in lines


def test_print_info_ref(monkeypatch):
    monkeypatch.setattr(version, "REF", "main")
    assert version.print_info().splitlines()[0] == "ref:        main"