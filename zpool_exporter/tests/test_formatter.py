import unittest
from datetime import datetime, timezone
from pathlib import Path

from zpool_exporter.models.pool import (
    DIAGNOSTICS_LOGGER,
    DeviceMetrics,
    DeviceStatus,
    ErrorStatus,
    PoolMetrics,
    ScanStatus,
)
from zpool_exporter.models.values import DeviceStatusValue, ScanStatusValue
from zpool_exporter.services.formatter import (
    DeviceTreeName,
    escape_label_value,
    format_metrics,
    format_value,
)
from zpool_exporter.services.parser import parse_zpool_status

INPUT_DIR = Path(__file__).parent / "input"

NOW = datetime(2024, 10, 28, 15, 14, 51, tzinfo=timezone.utc)


def render_input(name: str, **kwargs) -> str:
    text = (INPUT_DIR / name).read_text(encoding="utf-8")
    return format_metrics(parse_zpool_status(text, timezone.utc), NOW, **kwargs)


class FormatFixturesTests(unittest.TestCase):
    def test_healthy_pool_full_output(self):
        expected = (INPUT_DIR / "healthy.prom").read_text(encoding="utf-8")
        self.assertEqual(render_input("healthy.txt"), expected)

    def test_no_pools(self):
        output = render_input("no-pools.txt")
        self.assertEqual(output, "# no pools reported\n")
        self.assertNotIn("zpool_pool_state", output)

    def test_degraded_mirror(self):
        lines = render_input("degraded-mirror.txt").splitlines()

        self.assertIn('zpool_pool_state{pool="tank"} 50', lines)
        self.assertIn('zpool_pool_status_desc{pool="tank"} 50', lines)
        self.assertIn('zpool_error_state{pool="tank"} 50', lines)
        self.assertIn('zpool_dev_state{pool="tank",dev="mirror-0"} 50', lines)
        self.assertIn('zpool_dev_state{pool="tank",dev="mirror-0/sda"} 10', lines)
        self.assertIn('zpool_dev_state{pool="tank",dev="mirror-0/sdb"} 50', lines)
        self.assertIn('zpool_dev_errors_checksum{pool="tank",dev="mirror-0/sdb"} 3', lines)

    def test_scrub_in_progress(self):
        lines = render_input("scrub-in-progress.txt").splitlines()

        self.assertIn('zpool_scan_state{pool="tank"} 30', lines)
        self.assertIn('zpool_pool_status_desc{pool="tank"} 15', lines)
        self.assertIn('zpool_scan_age{pool="tank"} 7239.247500', lines)
        self.assertIn('zpool_dev_state{pool="tank",dev="mirror-0/sdb"} 80', lines)

    def test_multiple_pools_ordering(self):
        with self.assertLogs(DIAGNOSTICS_LOGGER, level="WARNING"):
            lines = render_input("multiple-pools.txt").splitlines()

        pool_state = [line for line in lines if line.startswith("zpool_pool_state{")]
        self.assertEqual(
            pool_state,
            ['zpool_pool_state{pool="backup"} 10', 'zpool_pool_state{pool="tank"} 10'],
        )
        dev_read = [line for line in lines if line.startswith("zpool_dev_errors_read{")]
        self.assertEqual(
            dev_read,
            [
                'zpool_dev_errors_read{pool="backup",dev=""} 0',
                'zpool_dev_errors_read{pool="backup",dev="raidz1-0"} 0',
                'zpool_dev_errors_read{pool="backup",dev="raidz1-0/sdc"} 0',
                'zpool_dev_errors_read{pool="backup",dev="raidz1-0/sdd"} 0',
                'zpool_dev_errors_read{pool="backup",dev="raidz1-0/sde"} 2',
                'zpool_dev_errors_read{pool="tank",dev=""} 0',
                'zpool_dev_errors_read{pool="tank",dev="sda"} 0',
            ],
        )
        self.assertIn('zpool_dev_state{pool="backup",dev="raidz1-0/sdd"} 1', lines)
        self.assertIn('zpool_pool_status_desc{pool="backup"} 5', lines)
        self.assertIn('zpool_scan_state{pool="backup"} 15', lines)
        self.assertIn('zpool_scan_age{pool="backup"} 60.000000', lines)

    def test_one_help_and_type_line_per_metric(self):
        with self.assertLogs(DIAGNOSTICS_LOGGER, level="WARNING"):
            lines = render_input("multiple-pools.txt").splitlines()

        help_names = [line.split()[2] for line in lines if line.startswith("# HELP ")]
        type_names = [line.split()[2] for line in lines if line.startswith("# TYPE ")]
        self.assertEqual(help_names, type_names)
        self.assertEqual(len(help_names), len(set(help_names)))
        self.assertEqual(len(help_names), 9)
        self.assertTrue(all(line.endswith(" gauge") for line in lines if line.startswith("# TYPE ")))


class FormatValuesTests(unittest.TestCase):
    def test_missing_fields_are_zero(self):
        lines = format_metrics([PoolMetrics(name="tank")], NOW).splitlines()

        self.assertIn('zpool_pool_state{pool="tank"} 0', lines)
        self.assertIn('zpool_pool_status_desc{pool="tank"} 0', lines)
        self.assertIn('zpool_scan_state{pool="tank"} 0', lines)
        self.assertIn('zpool_scan_age{pool="tank"} 0', lines)
        self.assertIn('zpool_error_state{pool="tank"} 0', lines)
        self.assertFalse(any(line.startswith("zpool_dev_state{") for line in lines))

    def test_unrecognized_values_are_one(self):
        pool = PoolMetrics(
            name="tank",
            state=DeviceStatus.UNRECOGNIZED,
            scan_status=(ScanStatus.UNRECOGNIZED, NOW),
            error=ErrorStatus.UNRECOGNIZED,
        )
        lines = format_metrics([pool], NOW).splitlines()

        self.assertIn('zpool_pool_state{pool="tank"} 1', lines)
        self.assertIn('zpool_scan_state{pool="tank"} 1', lines)
        self.assertIn('zpool_scan_age{pool="tank"} 0.000000', lines)
        self.assertIn('zpool_error_state{pool="tank"} 1', lines)

    def test_unrecognized_scan_and_error_codes(self):
        text = (
            "  pool: tank\n"
            "  scan: repairing stuff on Sun Oct 27 15:14:51 2024\n"
            "errors: something odd happened\n"
        )
        with self.assertLogs(DIAGNOSTICS_LOGGER, level="WARNING") as logs:
            lines = format_metrics(parse_zpool_status(text, timezone.utc), NOW).splitlines()

        self.assertEqual(len(logs.records), 2)
        self.assertIn('zpool_scan_state{pool="tank"} 1', lines)
        self.assertIn('zpool_error_state{pool="tank"} 1', lines)

    def test_lookup_block(self):
        output = format_metrics([], NOW, compute_time_start=10.0, clock=lambda: 10.25)

        self.assertEqual(
            output,
            "# no pools reported\n"
            "# HELP zpool_lookup Total duration of the lookup in seconds\n"
            "# TYPE zpool_lookup gauge\n"
            "zpool_lookup 0.250000\n",
        )

    def test_lookup_is_last(self):
        pool = PoolMetrics(name="tank")
        lines = format_metrics([pool], NOW, compute_time_start=1.0, clock=lambda: 3.0).splitlines()
        self.assertEqual(lines[-1], "zpool_lookup 2.000000")

    def test_label_escaping(self):
        self.assertEqual(escape_label_value('a"b\\c\nd'), 'a\\"b\\\\c\\nd')

        lines = format_metrics([PoolMetrics(name='we"ird')], NOW).splitlines()
        self.assertIn('zpool_pool_state{pool="we\\"ird"} 0', lines)

    def test_format_value(self):
        self.assertEqual(format_value(10), "10")
        self.assertEqual(format_value(0.0), "0")
        self.assertEqual(format_value(0.5), "0.500000")
        self.assertEqual(format_value(1.0 / 3.0), "0.333333")

    def test_device_counters(self):
        device = DeviceMetrics(
            depth=1,
            name="sda",
            state=DeviceStatus.FAULTED,
            errors_read=7,
            errors_write=8,
            errors_checksum=9,
        )
        pool = PoolMetrics(name="tank", devices=[device])
        lines = format_metrics([pool], NOW).splitlines()

        self.assertIn('zpool_dev_state{pool="tank",dev="sda"} 60', lines)
        self.assertIn('zpool_dev_errors_read{pool="tank",dev="sda"} 7', lines)
        self.assertIn('zpool_dev_errors_write{pool="tank",dev="sda"} 8', lines)
        self.assertIn('zpool_dev_errors_checksum{pool="tank",dev="sda"} 9', lines)


class DeviceTreeNameTests(unittest.TestCase):
    def test_path_follows_depth(self):
        tree = DeviceTreeName()
        seen = []
        for depth, name in [
            (0, "tank"),
            (1, "mirror-0"),
            (2, "sda"),
            (2, "sdb"),
            (1, "mirror-1"),
            (2, "sdc"),
            (1, "logs"),
            (0, "other"),
        ]:
            tree.update(depth, name)
            seen.append(str(tree))

        self.assertEqual(
            seen,
            ["", "mirror-0", "mirror-0/sda", "mirror-0/sdb", "mirror-1", "mirror-1/sdc", "logs", ""],
        )

    def test_component_count_matches_depth(self):
        tree = DeviceTreeName()
        tree.update(1, "a")
        tree.update(2, "b")
        tree.update(3, "c")
        self.assertEqual(len(str(tree).split("/")), 3)


class StatusValueTests(unittest.TestCase):
    def test_summary_in_declaration_order(self):
        self.assertEqual(
            ScanStatusValue.summarize(),
            "UnknownMissing = 0, Unrecognized = 1, ScrubRepaired = 10, Resilvered = 15, ScrubInProgress = 30",
        )

    def test_from_source(self):
        self.assertEqual(DeviceStatusValue.from_source(None), 0)
        self.assertEqual(DeviceStatusValue.from_source(DeviceStatus.UNAVAIL), 100)
        self.assertEqual(ScanStatusValue.from_source(ScanStatus.RESILVERED), 15)

    def test_every_variant_has_a_value(self):
        for status in DeviceStatus:
            self.assertIn(status.name, DeviceStatusValue.__members__)
