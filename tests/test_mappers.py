#!/usr/bin/env python3
"""
Row mapper tests

Column reordering, timestamp adjustment and time zone conversion for
every data kind, using records as the service sends them.
"""

import pytest
import pytz

from qdownload.config import DownloadConfig
from qdownload.exceptions import MappingError, TooFewColumnsError
from qdownload.mappers import RowMapper, map_eod_bar, map_interval_bar, map_minute_bar, map_tick
from qdownload.request_factory import DataKind

VALID_EOD_BAR = "999,2019-02-21,24.0600,23.8038,23.8700,24.0000,29183,0,"
TOO_FEW_COLUMNS_EOD_BAR = "999,2019-02-21,24.0600,23.8038,23.8700,24.0000,29183"
VALID_MINUTE_BAR = "999,2019-02-26 12:22:00,23.8000,23.8000,23.8000,23.8000,13578,100,0,"
TOO_FEW_COLUMNS_MINUTE_BAR = "999,2019-02-26 12:22:00,23.8000,23.8000,23.8000,23.8000"
VALID_TICK = "999,2019-02-25 11:30:06.691000,23.8800,12,6714,23.8700,23.9700,6,O,25,3D87,0,13"
TOO_FEW_COLUMNS_TICK = "999,2019-02-25 11:30:06.691,23.8800,12,6714,23.8700,23.9700,6,O,25"

ET = pytz.timezone("America/New_York")
CT = pytz.timezone("America/Chicago")


def make_config(**overrides) -> DownloadConfig:
    options = {'start_date': "20190122", 'end_date': "20190221"}
    options.update(overrides)
    return DownloadConfig(**options)


class TestEodBarMapper:
    """EOD bars are reordered from high,low,open,close to open,high,low,close."""

    def test_valid_eod_bar(self):
        row = map_eod_bar(VALID_EOD_BAR.split(","), ET, make_config())
        assert row == "2019-02-21,23.8700,24.0600,23.8038,24.0000,29183,0"

    def test_eod_bar_ignores_target_zone(self):
        row = map_eod_bar(VALID_EOD_BAR.split(","), CT, make_config())
        assert row.startswith("2019-02-21,")

    def test_too_few_columns(self):
        with pytest.raises(TooFewColumnsError):
            map_eod_bar(TOO_FEW_COLUMNS_EOD_BAR.split(","), ET, make_config())

    def test_no_columns(self):
        with pytest.raises(TooFewColumnsError):
            map_eod_bar([], ET, make_config())


class TestMinuteBarMapper:
    """Minute bars arrive stamped at bar end."""

    def test_bar_start_timestamp(self):
        row = map_minute_bar(VALID_MINUTE_BAR.split(","), ET, make_config())
        assert row == "2019-02-26 12:21:00,23.8000,23.8000,23.8000,23.8000,100"

    def test_bar_start_timestamp_in_chicago(self):
        row = map_minute_bar(VALID_MINUTE_BAR.split(","), CT, make_config())
        assert row == "2019-02-26 11:21:00,23.8000,23.8000,23.8000,23.8000,100"

    def test_bar_end_timestamp(self):
        row = map_minute_bar(VALID_MINUTE_BAR.split(","), ET, make_config(end_timestamp=True))
        assert row == "2019-02-26 12:22:00,23.8000,23.8000,23.8000,23.8000,100"

    def test_uses_period_volume(self):
        fields = "999,2019-02-26 12:22:00,1.1,1.0,1.05,1.08,500000,250,3,".split(",")
        row = map_minute_bar(fields, ET, make_config())
        assert row.split(",")[-1] == "250"

    def test_utc_conversion(self):
        row = map_minute_bar(VALID_MINUTE_BAR.split(","), pytz.utc, make_config())
        assert row.startswith("2019-02-26 17:21:00,")

    def test_daylight_saving_conversion(self):
        fields = "999,2019-07-01 10:01:00,1,1,1,1,10,5,1,".split(",")
        row = map_minute_bar(fields, pytz.utc, make_config())
        assert row.startswith("2019-07-01 14:00:00,")

    def test_too_few_columns(self):
        with pytest.raises(TooFewColumnsError):
            map_minute_bar(TOO_FEW_COLUMNS_MINUTE_BAR.split(","), ET, make_config())

    def test_no_columns(self):
        with pytest.raises(TooFewColumnsError):
            map_minute_bar([], ET, make_config())

    def test_malformed_timestamp(self):
        fields = "999,26/02/2019 12:22,1,1,1,1,10,5,1,".split(",")
        with pytest.raises(MappingError) as exc_info:
            map_minute_bar(fields, ET, make_config())
        assert not isinstance(exc_info.value, TooFewColumnsError)


class TestIntervalBarMapper:
    """Interval bars are used as received; labelling is negotiated with the service."""

    def interval_config(self, **overrides) -> DownloadConfig:
        return make_config(interval_length=60, interval_type="seconds", **overrides)

    def test_bar_start_timestamp(self):
        row = map_interval_bar(VALID_MINUTE_BAR.split(","), ET, self.interval_config())
        assert row == "2019-02-26 12:22:00,23.8000,23.8000,23.8000,23.8000,100"

    def test_bar_start_timestamp_in_chicago(self):
        row = map_interval_bar(VALID_MINUTE_BAR.split(","), CT, self.interval_config())
        assert row == "2019-02-26 11:22:00,23.8000,23.8000,23.8000,23.8000,100"

    def test_bar_end_timestamp(self):
        config = self.interval_config(end_timestamp=True)
        row = map_interval_bar(VALID_MINUTE_BAR.split(","), ET, config)
        assert row == "2019-02-26 12:22:00,23.8000,23.8000,23.8000,23.8000,100"

    def test_too_few_columns(self):
        with pytest.raises(TooFewColumnsError):
            map_interval_bar(TOO_FEW_COLUMNS_MINUTE_BAR.split(","), ET, self.interval_config())


class TestTickMapper:
    """Ticks keep every column and only reformat the timestamp."""

    def test_valid_tick(self):
        row = map_tick(VALID_TICK.split(","), ET, make_config())
        assert row == "2019-02-25 11:30:06.691000,23.8800,12,6714,23.8700,23.9700,6,O,25,3D87,0,13"

    def test_valid_tick_in_chicago(self):
        row = map_tick(VALID_TICK.split(","), CT, make_config())
        assert row == "2019-02-25 10:30:06.691000,23.8800,12,6714,23.8700,23.9700,6,O,25,3D87,0,13"

    def test_missing_day_code(self):
        fields = VALID_TICK.split(",")[:12]
        row = map_tick(fields, ET, make_config())
        assert row.endswith(",3D87,0,")

    def test_too_few_columns(self):
        with pytest.raises(TooFewColumnsError):
            map_tick(TOO_FEW_COLUMNS_TICK.split(","), ET, make_config())

    def test_no_columns(self):
        with pytest.raises(TooFewColumnsError):
            map_tick([], ET, make_config())


class TestRowMapper:
    """Separator handling and kind selection."""

    def test_csv_tick(self):
        mapper = RowMapper(DataKind.TICK, make_config())
        assert mapper.map(VALID_TICK.split(",")) == \
            "2019-02-25 11:30:06.691000,23.8800,12,6714,23.8700,23.9700,6,O,25,3D87,0,13"

    def test_tsv_tick(self):
        mapper = RowMapper(DataKind.TICK, make_config(tsv=True))
        assert mapper.map(VALID_TICK.split(",")) == \
            "2019-02-25 11:30:06.691000\t23.8800\t12\t6714\t23.8700\t23.9700\t6\tO\t25\t3D87\t0\t13"

    def test_tsv_header(self):
        mapper = RowMapper(DataKind.EOD, make_config(tsv=True))
        assert mapper.header == "date\topen\thigh\tlow\tclose\tvolume\toi"

    def test_target_zone_from_config(self):
        mapper = RowMapper(DataKind.MINUTE, make_config(time_zone="CT"))
        assert mapper.map(VALID_MINUTE_BAR.split(",")).startswith("2019-02-26 11:21:00,")

    def test_zones_differ_by_offset(self):
        fields = VALID_MINUTE_BAR.split(",")
        new_york = RowMapper(DataKind.MINUTE, make_config(time_zone="America/New_York")).map(fields)
        chicago = RowMapper(DataKind.MINUTE, make_config(time_zone="America/Chicago")).map(fields)

        assert new_york.split(",")[0] == "2019-02-26 12:21:00"
        assert chicago.split(",")[0] == "2019-02-26 11:21:00"
        assert new_york.split(",")[1:] == chicago.split(",")[1:]

    def test_too_few_columns_is_distinct(self):
        mapper = RowMapper(DataKind.EOD, make_config())
        with pytest.raises(TooFewColumnsError):
            mapper.map(TOO_FEW_COLUMNS_EOD_BAR.split(","))
