"""Tests for cluster connection and source pod lookup."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException
from urllib3.exceptions import MaxRetryError

from kmime.cluster import ClusterHandle, connect, fetch_pod
from kmime.errors import ClusterConnectionError, SourceLookupError


class TestConnect:
    """Tests for connect."""

    @patch("kmime.cluster.client.config")
    def test_prefers_in_cluster_config(self, mock_config: MagicMock) -> None:
        mock_config.ConfigException = ConfigException

        handle = connect()

        assert isinstance(handle, ClusterHandle)
        mock_config.load_incluster_config.assert_called_once()
        mock_config.load_kube_config.assert_not_called()

    @patch("kmime.cluster.client.config")
    def test_falls_back_to_kubeconfig(self, mock_config: MagicMock) -> None:
        """Outside a cluster the given kubeconfig and context are used."""
        mock_config.ConfigException = ConfigException
        mock_config.load_incluster_config.side_effect = ConfigException("not in cluster")

        connect("/tmp/kubeconfig", "staging")

        mock_config.load_kube_config.assert_called_once_with(config_file="/tmp/kubeconfig", context="staging")

    @patch("kmime.cluster.client.config")
    def test_no_usable_config(self, mock_config: MagicMock) -> None:
        mock_config.ConfigException = ConfigException
        mock_config.load_incluster_config.side_effect = ConfigException("not in cluster")
        mock_config.load_kube_config.side_effect = ConfigException("Invalid kube-config file")

        with pytest.raises(ClusterConnectionError, match="Invalid kube-config file"):
            connect()

    @patch("kmime.cluster.client.config")
    def test_missing_kubeconfig_file(self, mock_config: MagicMock) -> None:
        mock_config.ConfigException = ConfigException
        mock_config.load_incluster_config.side_effect = ConfigException("not in cluster")
        mock_config.load_kube_config.side_effect = FileNotFoundError("/nope")

        with pytest.raises(ClusterConnectionError):
            connect("/nope")


class TestFetchPod:
    """Tests for fetch_pod."""

    def _cluster(self) -> ClusterHandle:
        return ClusterHandle(api_client=MagicMock(), core=MagicMock())

    def test_returns_pod(self, make_pod) -> None:
        cluster = self._cluster()
        pod = make_pod()
        cluster.core.read_namespaced_pod.return_value = pod

        assert fetch_pod(cluster, "prod", "web-7f") is pod
        cluster.core.read_namespaced_pod.assert_called_once_with(name="web-7f", namespace="prod")

    def test_not_found(self) -> None:
        cluster = self._cluster()
        cluster.core.read_namespaced_pod.side_effect = ApiException(status=404, reason="Not Found")

        with pytest.raises(SourceLookupError) as exc_info:
            fetch_pod(cluster, "prod", "ghost")

        assert exc_info.value.pod_name == "ghost"
        assert exc_info.value.namespace == "prod"

    def test_forbidden(self) -> None:
        """Other API errors are connection problems, not a missing pod."""
        cluster = self._cluster()
        cluster.core.read_namespaced_pod.side_effect = ApiException(status=403, reason="Forbidden")

        with pytest.raises(ClusterConnectionError, match="Forbidden"):
            fetch_pod(cluster, "prod", "web-7f")

    def test_unreachable(self) -> None:
        cluster = self._cluster()
        cluster.core.read_namespaced_pod.side_effect = MaxRetryError(pool=None, url="/api/v1")

        with pytest.raises(ClusterConnectionError):
            fetch_pod(cluster, "prod", "web-7f")
