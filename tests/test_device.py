"""Tests for the YeelightDevice record."""

from __future__ import annotations

from yeelight_lan_protocol import (
    ColorMode,
    DEFAULT_CONTROL_PORT,
    YeelightDevice,
    parse_discovery_response,
)


class TestFromAddress:
    def test_minimal_record(self) -> None:
        device = YeelightDevice.from_address("192.168.1.94")
        assert device.address == "192.168.1.94"
        assert device.port == DEFAULT_CONTROL_PORT
        assert device.device_id is None
        assert device.model is None
        assert device.power is None
        assert device.methods == set()

    def test_records_without_id_compare_by_identity(self) -> None:
        a = YeelightDevice.from_address("192.168.1.94")
        b = YeelightDevice.from_address("192.168.1.94")
        assert a != b
        assert a == a
        assert len({a, b}) == 2


class TestIdentity:
    def test_equal_by_id(self) -> None:
        a = YeelightDevice("10.0.0.1", device_id="0x1")
        b = YeelightDevice("10.0.0.2", device_id="0x1")
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_ordered_by_id(self) -> None:
        devices = [YeelightDevice("10.0.0.1", device_id=i) for i in ("0x3", "0x1", "0x2")]
        assert [d.device_id for d in sorted(devices)] == ["0x1", "0x2", "0x3"]


class TestActiveColor:
    def _device(self, mode: str) -> YeelightDevice:
        return parse_discovery_response(
            "Location: yeelight://10.0.0.2:55443\nid: 0x1\n"
            f"color_mode: {mode}\nct: 2700\nrgb: 255\nhue: 120\nsat: 50\n"
        )

    def test_direct_color(self) -> None:
        device = self._device("1")
        assert device.color_mode == ColorMode.DIRECT_COLOR
        assert device.active_color() == {"rgb": 255}

    def test_color_temperature(self) -> None:
        assert self._device("2").active_color() == {"color_temperature": 2700}

    def test_flow(self) -> None:
        assert self._device("3").active_color() == {"hue": 120, "saturation": 50}

    def test_unknown_mode(self) -> None:
        assert YeelightDevice.from_address("10.0.0.2").active_color() == {}


class TestRendering:
    def test_to_jsonable(self, sample_response: bytes) -> None:
        data = parse_discovery_response(sample_response).to_jsonable()
        assert data["id"] == "0x000000000015243f"
        assert data["color_mode"] == "COLOR_TEMPERATURE"
        assert data["methods"] == sorted(data["methods"])

    def test_str_names_id_and_address(self, sample_response: bytes) -> None:
        text = str(parse_discovery_response(sample_response))
        assert "0x000000000015243f" in text
        assert "192.168.1.239" in text
