"""Tests for magnet extraction and result ranking."""

from __future__ import annotations

from typing import Any

from schrodrive.infrastructure.indexers.magnet import (
    build_magnet_from_hash,
    get_magnet,
    magnet_hash,
    pick_best,
)

_HEX = "0123456789abcdef0123456789abcdef01234567"
_B32 = "MFRGGZDFMZTWQ2LKNNWG23TPOBYXE43U"


class TestBuildMagnetFromHash:
    def test_hex_hash_is_uppercased(self) -> None:
        assert build_magnet_from_hash(_HEX) == f"magnet:?xt=urn:btih:{_HEX.upper()}"

    def test_base32_hash(self) -> None:
        assert build_magnet_from_hash(_B32.lower()) == f"magnet:?xt=urn:btih:{_B32}"

    def test_title_is_url_encoded(self) -> None:
        magnet = build_magnet_from_hash(_HEX, "Dune Part Two & More")
        assert magnet is not None
        assert magnet.endswith("&dn=Dune%20Part%20Two%20%26%20More")

    def test_invalid_hashes(self) -> None:
        assert build_magnet_from_hash(None) is None
        assert build_magnet_from_hash("") is None
        assert build_magnet_from_hash("xyz") is None
        assert build_magnet_from_hash(_HEX[:-1]) is None


class TestGetMagnet:
    def test_none(self) -> None:
        assert get_magnet(None) is None

    def test_magnet_field_first(self, result_factory: Any) -> None:
        result = result_factory(
            magnet_field="magnet:?xt=urn:btih:AAA",
            guid="magnet:?xt=urn:btih:BBB",
        )
        assert get_magnet(result) == "magnet:?xt=urn:btih:AAA"

    def test_guid_then_link(self, result_factory: Any) -> None:
        assert get_magnet(result_factory(guid="magnet:?xt=urn:btih:G")) == "magnet:?xt=urn:btih:G"
        assert (
            get_magnet(result_factory(guid="https://x/1", direct_link="magnet:?xt=urn:btih:L"))
            == "magnet:?xt=urn:btih:L"
        )

    def test_built_from_info_hash(self, result_factory: Any) -> None:
        magnet = get_magnet(result_factory(title="Dune", info_hash=_HEX))
        assert magnet == f"magnet:?xt=urn:btih:{_HEX.upper()}&dn=Dune"

    def test_no_source(self, result_factory: Any) -> None:
        assert get_magnet(result_factory(direct_link="https://x/download")) is None


class TestPickBest:
    def test_empty(self) -> None:
        assert pick_best([]) is None

    def test_prefers_results_with_magnet(self, result_factory: Any) -> None:
        no_magnet = result_factory(title="A", seeders=500)
        with_magnet = result_factory(title="B", seeders=5, info_hash=_HEX)
        assert pick_best([no_magnet, with_magnet]) is with_magnet

    def test_falls_back_to_all_results(self, result_factory: Any) -> None:
        low = result_factory(title="A", seeders=1)
        high = result_factory(title="B", seeders=9)
        assert pick_best([low, high]) is high

    def test_seeders_then_size(self, result_factory: Any) -> None:
        small = result_factory(title="small", seeders=10, size=1, info_hash=_HEX)
        big = result_factory(title="big", seeders=10, size=2, info_hash=_HEX)
        assert pick_best([small, big]) is big

    def test_ties_keep_input_order(self, result_factory: Any) -> None:
        first = result_factory(title="first", seeders=3, size=5, info_hash=_HEX)
        second = result_factory(title="second", seeders=3, size=5, info_hash=_HEX)
        assert pick_best([first, second]) is first


def test_magnet_hash() -> None:
    assert magnet_hash("magnet:?xt=urn:btih:ABC&dn=x") == "ABC"
    assert magnet_hash("https://example.com") is None
