import pytest

from packbuilder.datacls import Bind
from packbuilder.exceptions import BindFormatError


class TestBind:
    @pytest.mark.parametrize("bind, expected", [
        ("/src:/dst", Bind("/src", "/dst")),
        ("pack-layers-x:/layers", Bind("pack-layers-x", "/layers")),
        ("/src:/dst:ro", Bind("/src", "/dst", "ro")),
        ("/src:/dst:z", Bind("/src", "/dst", "z")),
        ("/src:/dst:Z", Bind("/src", "/dst", "Z")),
        ("/src:/dst:ro,z", Bind("/src", "/dst", "ro,z")),
        ("cache:/cache:nocopy", Bind("cache", "/cache", "nocopy")),
        ("/src:/dst:cached", Bind("/src", "/dst", "cached")),
    ])
    def test_parse(self, bind, expected):
        assert Bind.parse(bind) == expected

    @pytest.mark.parametrize("bind", ["no-colon", ":/dst", "/src:", "/src:/dst:", ""])
    def test_parse_rejects_malformed(self, bind):
        with pytest.raises(BindFormatError, match="we expect src:dst"):
            Bind.parse(bind)

    def test_str_and_tuple(self):
        bind = Bind.parse("/src:/dst:ro,z")

        assert bind.as_tuple() == ("/src", "/dst", "ro,z")
        assert str(bind) == "/src:/dst:ro,z"
        assert Bind.parse("/src:/dst").as_tuple() == ("/src", "/dst")
