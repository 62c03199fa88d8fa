"""
Tests for the exporter application and its HTTP endpoints
"""
from unittest.mock import MagicMock, patch

import pytest
from prometheus_client.parser import text_string_to_metric_families

from docker_stats_exporter.config import ExporterConfig
from docker_stats_exporter.errors import StatSourceError
from docker_stats_exporter.exporter import DockerStatsExporter, main, open_source
from docker_stats_exporter.reporters import InfluxDBReporter, PrometheusReporter, Reporter
from docker_stats_exporter.source import DockerStatsSource, LineSource


def gauge_values(text):
    """Map (metric name, container name) -> value from exposition text."""
    return {
        (sample.name, sample.labels.get('name')): sample.value
        for family in text_string_to_metric_families(text)
        for sample in family.samples
    }


@pytest.fixture
def make_exporter():
    """Build exporters without touching signal handlers or docker"""
    def _make(lines=(), **config_kwargs):
        config = ExporterConfig(**config_kwargs)
        reporter = None
        if config.target == 'influxdb':
            reporter = InfluxDBReporter(client=MagicMock())
        return DockerStatsExporter(
            config,
            source=LineSource(list(lines)),
            reporter=reporter,
            install_signal_handlers=False
        )
    return _make


class TestOpenSource:
    """Test source selection"""

    def test_docker_by_default(self):
        source = open_source(ExporterConfig(docker_bin='/opt/docker'))
        assert isinstance(source, DockerStatsSource)
        assert source.docker_bin == '/opt/docker'

    def test_recorded_file(self, tmp_path, web_line):
        path = tmp_path / "stats.jsonl"
        path.write_text(web_line + "\n")

        source = open_source(ExporterConfig(input_path=str(path)))

        assert isinstance(source, LineSource)
        assert list(source) == [web_line]
        source.close()

    def test_stdin(self):
        assert isinstance(open_source(ExporterConfig(input_path='-')), LineSource)


class TestRoutes:
    """Test Flask routes for the pull target"""

    def test_metrics_endpoint(self, make_exporter, web_line):
        exporter = make_exporter()
        exporter.ingestor.run([web_line])
        client = exporter.app.test_client()

        response = client.get('/metrics')

        assert response.status_code == 200
        assert response.content_type.startswith('text/plain')
        values = gauge_values(response.get_data(as_text=True))
        assert values[("docker_cpu_percent", "web")] == 5.0
        assert values[("docker_mem_usage_bytes", "web")] == 10485760
        assert values[("docker_net_output_bytes", "web")] == 2048

    def test_metrics_after_source_ended(self, make_exporter, web_line):
        """The last snapshot is still served after the source is gone"""
        exporter = make_exporter()
        exporter.ingestor.run([web_line])
        client = exporter.app.test_client()

        assert 'name="web"' in client.get('/metrics').get_data(as_text=True)
        assert client.get('/health').get_json()['status'] == 'degraded'

    def test_health_while_ingesting(self, make_exporter):
        exporter = make_exporter()
        exporter.ingestor.running = True

        response = exporter.app.test_client().get('/health')

        assert response.status_code == 200
        assert response.get_json() == {'status': 'healthy', 'ingesting': True, 'containers': 0}

    def test_root(self, make_exporter):
        data = make_exporter().app.test_client().get('/').get_json()

        assert data['name'] == 'Docker Stats Exporter'
        assert data['target'] == 'prometheus'
        assert '/metrics' in data['endpoints']

    def test_metrics_not_served_for_push_target(self, make_exporter):
        exporter = make_exporter(target='influxdb')
        assert exporter.app.test_client().get('/metrics').status_code == 404

    def test_scrapes_during_ingestion(self, make_exporter, make_line):
        """Concurrent scrapes never fail while the store is updated"""
        lines = [make_line(f"c{i % 5}", cpu=f"{i}.00%") for i in range(2000)]
        exporter = make_exporter(lines)
        client = exporter.app.test_client()

        thread = exporter.ingestor.start_background(exporter.source)
        while thread.is_alive():
            assert client.get('/metrics').status_code == 200
        thread.join(timeout=5)

        values = gauge_values(client.get('/metrics').get_data(as_text=True))
        assert values[("docker_cpu_percent", "c4")] == 1999.0


class TestLifecycle:
    """Test start/stop"""

    def test_builds_prometheus_reporter(self):
        exporter = DockerStatsExporter(ExporterConfig(), source=[], install_signal_handlers=False)
        assert isinstance(exporter.reporter, PrometheusReporter)

    @patch('docker_stats_exporter.reporters.InfluxDBClient')
    def test_builds_influxdb_reporter(self, mock_client_class):
        config = ExporterConfig(target='influxdb', host='tsdb', port=8086, db='docker')

        exporter = DockerStatsExporter(config, source=[], install_signal_handlers=False)

        assert isinstance(exporter.reporter, InfluxDBReporter)
        mock_client_class.assert_called_once_with(host='tsdb', port=8086, database='docker')

    def test_push_target_ingests_in_foreground(self, make_exporter, make_line):
        exporter = make_exporter([make_line("web"), "bad", make_line("db")], target='influxdb')

        exporter.start()

        client = exporter.reporter.client
        assert client.write_points.call_count == 2
        written = [call[0][0][0]['tags']['name'] for call in client.write_points.call_args_list]
        assert written == ['web', 'db']
        client.close.assert_called_once()

    def test_pull_target_runs_http_server(self, make_exporter, web_line):
        exporter = make_exporter([web_line], port=9300)

        with patch.object(exporter.app, 'run') as mock_run:
            exporter.start()
            exporter.ingest_thread.join(timeout=5)

        mock_run.assert_called_once_with(host='0.0.0.0', port=9300, threaded=True)
        assert 'web' in exporter.store

    def test_start_spawns_source_first(self):
        source = MagicMock()
        source.start.side_effect = StatSourceError("no docker")
        exporter = DockerStatsExporter(ExporterConfig(), source=source, install_signal_handlers=False)

        with pytest.raises(StatSourceError):
            exporter.start()

    def test_stop_closes_source_and_reporter(self):
        source = MagicMock()
        reporter = MagicMock(spec=Reporter)
        exporter = DockerStatsExporter(
            ExporterConfig(), source=source, reporter=reporter, install_signal_handlers=False
        )

        exporter.stop()

        source.close.assert_called_once()
        reporter.close.assert_called_once()


class TestMain:
    """Test the command line entry point"""

    @patch('docker_stats_exporter.exporter.configure_logging')
    @patch('docker_stats_exporter.exporter.DockerStatsExporter')
    def test_main_starts_exporter(self, mock_exporter_class, mock_logging):
        main(['--port', '9300'])

        config = mock_exporter_class.call_args[0][0]
        assert config.port == 9300
        mock_exporter_class.return_value.start.assert_called_once()

    @patch('docker_stats_exporter.exporter.configure_logging')
    @patch('docker_stats_exporter.exporter.DockerStatsExporter')
    def test_source_failure_exits_nonzero(self, mock_exporter_class, mock_logging):
        mock_exporter_class.return_value.start.side_effect = StatSourceError("no docker")

        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1
        mock_exporter_class.return_value.stop.assert_called_once()

    @patch('docker_stats_exporter.exporter.configure_logging')
    def test_missing_input_file_exits_nonzero(self, mock_logging, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(['--input', str(tmp_path / 'missing.jsonl')])
        assert exc_info.value.code == 1

    def test_bad_flag_exits_with_usage(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(['--target', 'graphite'])

        assert exc_info.value.code == 2
        assert 'usage:' in capsys.readouterr().err
