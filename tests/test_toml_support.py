from privbroker import config


def test_toml_reader_available():
    assert config.tomllib is not None, "No TOML parser available; install tomli for Python <3.11"


def test_toml_writer_available():
    assert config.tomli_w is not None or config.tomlkit is not None, \
        "config set needs tomli-w or tomlkit"
