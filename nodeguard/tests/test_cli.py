import json

from nodeguard.cli.main import main


def _write_inputs(tmp_path):
    nodes = [
        {"id": "node-1", "title": "Hello", "fields": {}, "internal": {"content": ""}},
        {"id": "node-2", "title": "World", "fields": {}, "internal": {"content": ""}},
    ]
    nodes_path = tmp_path / "nodes.json"
    nodes_path.write_text(json.dumps({"nodes": nodes}), encoding="utf-8")

    transform_path = tmp_path / "transforms.py"
    transform_path.write_text(
        "def retitle(node):\n"
        "    node['title'] = node['title'].upper()\n"
        "\n"
        "def add_slug(node):\n"
        "    node['fields']['slug'] = '/' + node['id']\n"
        "    node['internal']['content'] = node['title']\n"
        "\n"
        "def explode(node):\n"
        "    raise RuntimeError('bad node ' + node['id'])\n",
        encoding="utf-8",
    )
    return nodes_path, transform_path


def test_cli_check_reports_unauthorized_writes_once_per_call_site(tmp_path, capsys):
    nodes_path, transform_path = _write_inputs(tmp_path)

    rc = main(["check", "--nodes", str(nodes_path), "--transform", f"{transform_path}:retitle", "--show-nodes"])

    assert rc == 1
    out = json.loads(capsys.readouterr().out)
    assert out["nodes_checked"] == 2
    assert out["violation_count"] == 1
    assert out["violations"][0]["key"] == "'title'"
    assert "transforms.py" in out["violations"][0]["location"]
    assert [n["title"] for n in out["nodes"]] == ["HELLO", "WORLD"]


def test_cli_check_passes_sanctioned_fields(tmp_path, capsys):
    nodes_path, transform_path = _write_inputs(tmp_path)

    rc = main(["check", "--nodes", str(nodes_path), "--transform", f"{transform_path}:add_slug"])

    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["violation_count"] == 0
    assert out["violations"] == []


def test_cli_check_rejects_bad_transform_reference(tmp_path, capsys):
    nodes_path, _ = _write_inputs(tmp_path)

    rc = main(["check", "--nodes", str(nodes_path), "--transform", "no-colon-here"])

    assert rc == 2
    assert "error:" in capsys.readouterr().err


def test_cli_status_prints_configuration(capsys):
    rc = main(["status"])

    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["env_var"] == "NODEGUARD_DETECT_NODE_MUTATIONS"
    assert "detect_node_mutations" in out["config"]
    assert isinstance(out["enabled"], bool)


def test_cli_check_reports_transform_failures(tmp_path, capsys):
    nodes_path, transform_path = _write_inputs(tmp_path)

    rc = main(["check", "--nodes", str(nodes_path), "--transform", f"{transform_path}:explode"])

    assert rc == 2
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "error: transform failed on node 0: RuntimeError: bad node node-1" in captured.err
