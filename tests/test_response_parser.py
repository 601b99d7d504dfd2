"""Tests for parsing discovery responses into device records."""

from __future__ import annotations

import pytest

from yeelight_lan_protocol import (
    ColorMode,
    DEFAULT_CONTROL_PORT,
    ResponseParseError,
    YeelightDevice,
    parse_discovery_response,
    parse_location,
)


class TestWellFormedResponse:
    def test_every_field(self, sample_response: bytes) -> None:
        device = parse_discovery_response(sample_response)

        assert device.address == "192.168.1.239"
        assert device.port == 55443
        assert device.device_id == "0x000000000015243f"
        assert device.model == "color"
        assert device.firmware_version == 18
        assert device.methods == {
            "get_prop", "set_default", "set_power", "toggle", "set_bright", "start_cf",
            "stop_cf", "set_scene", "cron_add", "cron_get", "cron_del", "set_ct_abx", "set_rgb",
        }
        assert device.power is True
        assert device.brightness == 100
        assert device.color_mode == ColorMode.COLOR_TEMPERATURE
        assert device.color_temperature == 4000
        assert device.rgb == 16711680
        assert device.hue == 100
        assert device.saturation == 35
        assert device.name == "my_bulb"
        assert device.refresh_interval_ms == 3600 * 1000
        assert device.field_errors == {}

    def test_minimal_example(self) -> None:
        data = (
            "HTTP/1.1 200 OK\r\n"
            "Location: yeelight://192.168.1.50:55443\r\n"
            "id: 0x1234\r\n"
            "support: get_prop set_power set_bright\r\n"
            "power: on\r\n"
            "bright: 80\r\n"
        )
        device = parse_discovery_response(data)

        assert device.address == "192.168.1.50"
        assert device.port == 55443
        assert device.device_id == "0x1234"
        assert len(device.methods) == 3
        assert device.power is True
        assert device.brightness == 80
        assert device.model is None
        assert device.color_mode is None

    def test_lines_in_any_order(self) -> None:
        data = (
            b"bright: 5\n"
            b"power: off\n"
            b"id: 0xabc\n"
            b"HTTP/1.1 200 OK\n"
            b"Location: yeelight://10.0.0.2:55443\n"
        )
        device = parse_discovery_response(data)

        assert device.device_id == "0xabc"
        assert device.address == "10.0.0.2"
        assert device.power is False
        assert device.brightness == 5

    def test_nul_padding_is_ignored(self, sample_response: bytes) -> None:
        device = parse_discovery_response(sample_response + b"\x00" * 200)
        assert device.name == "my_bulb"

    def test_unknown_and_framing_headers_are_kept_raw(self, sample_response: bytes) -> None:
        device = parse_discovery_response(sample_response)
        assert device.headers["server"] == "POSIX UPnP/1.0 YGLC/1"
        assert device.headers["Date"] == ""

    def test_empty_name(self) -> None:
        device = parse_discovery_response("Location: yeelight://10.0.0.2:55443\nid: 0x1\nname: \n")
        assert device.name == ""


class TestHeaderMatching:
    def test_header_names_are_case_sensitive(self) -> None:
        data = "Location: yeelight://10.0.0.2:55443\nid: 0x1\nBright: 42\nPOWER: on\n"
        device = parse_discovery_response(data)
        assert device.brightness is None
        assert device.power is None

    def test_uppercase_id_is_not_an_id(self) -> None:
        with pytest.raises(ResponseParseError) as excinfo:
            parse_discovery_response("Location: yeelight://10.0.0.2:55443\nID: 0x1\n")
        assert excinfo.value.field == "id"


class TestRequiredFields:
    def test_missing_id(self, response_factory) -> None:
        with pytest.raises(ResponseParseError) as excinfo:
            parse_discovery_response(response_factory(55443, device_id=None))
        assert excinfo.value.field == "id"

    def test_missing_location(self) -> None:
        with pytest.raises(ResponseParseError) as excinfo:
            parse_discovery_response("HTTP/1.1 200 OK\r\nid: 0x1\r\n")
        assert excinfo.value.field == "Location"

    def test_location_without_scheme(self) -> None:
        with pytest.raises(ResponseParseError):
            parse_discovery_response("Location: 10.0.0.2:55443\nid: 0x1\n")

    def test_location_with_bad_port(self) -> None:
        with pytest.raises(ResponseParseError):
            parse_discovery_response("Location: yeelight://10.0.0.2:abc\nid: 0x1\n")

    @pytest.mark.parametrize("port", ["70000", "-1", "0"])
    def test_location_with_out_of_range_port(self, port: str) -> None:
        with pytest.raises(ResponseParseError) as excinfo:
            parse_discovery_response(f"Location: yeelight://10.0.0.2:{port}\nid: 0x1\n")
        assert excinfo.value.field == "Location"

    def test_id_not_utf8(self) -> None:
        with pytest.raises(ResponseParseError) as excinfo:
            parse_discovery_response(b"Location: yeelight://10.0.0.2:55443\nid: 0x\xff\xfe\n")
        assert excinfo.value.field == "id"


class TestFieldErrors:
    def _parse(self, extra: str) -> YeelightDevice:
        return parse_discovery_response(f"Location: yeelight://10.0.0.2:55443\nid: 0x1\nbright: 50\n{extra}\n")

    def test_non_numeric_field_only_affects_that_field(self) -> None:
        device = self._parse("fw_ver: beta")
        assert device.firmware_version is None
        assert "firmware_version" in device.field_errors
        assert device.brightness == 50
        assert device.device_id == "0x1"

    def test_bad_power(self) -> None:
        device = self._parse("power: maybe")
        assert device.power is None
        assert "power" in device.field_errors

    def test_unknown_color_mode(self) -> None:
        device = self._parse("color_mode: 7")
        assert device.color_mode is None
        assert "color_mode" in device.field_errors

    def test_name_too_long(self) -> None:
        device = self._parse("name: " + "x" * 65)
        assert device.name is None
        assert "name" in device.field_errors

    def test_optional_field_not_utf8(self) -> None:
        device = parse_discovery_response(
            b"Location: yeelight://10.0.0.2:55443\nid: 0x1\nname: \xff\xfe\nbright: 50\n"
        )
        assert device.name is None
        assert "name" in device.field_errors
        assert device.brightness == 50
        assert device.device_id == "0x1"

    def test_cache_control_without_max_age(self) -> None:
        device = self._parse("Cache-Control: no-cache")
        assert device.refresh_interval_ms is None
        assert "refresh_interval_ms" in device.field_errors


class TestParseLocation:
    def test_host_and_port(self) -> None:
        assert parse_location("yeelight://192.168.1.50:55443") == ("192.168.1.50", 55443)

    def test_default_port(self) -> None:
        assert parse_location("yeelight://192.168.1.50") == ("192.168.1.50", DEFAULT_CONTROL_PORT)

    def test_trailing_slash(self) -> None:
        assert parse_location("yeelight://192.168.1.50:1234/") == ("192.168.1.50", 1234)
