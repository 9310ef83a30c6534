"""Tests for the Secret mirror handler."""

from __future__ import annotations

import dataclasses
from unittest.mock import Mock, patch

import kopf
import pytest
from kubernetes.client.exceptions import ApiException

from flux_cluster_generator.constants import CONFLICT_RETRY_DELAY
from flux_cluster_generator.handlers.secret import (
    RESULT_CLEANED,
    RESULT_CREATED,
    RESULT_SKIPPED,
    RESULT_UNCHANGED,
    RESULT_UPDATED,
    SecretMirrorHandler,
    handle_secret,
    handle_secret_deleted,
    secret_deleted,
    secret_in_scope,
)
from flux_cluster_generator.utils.errors import CleanupError, NameCollisionError
from flux_cluster_generator.utils.persistence import KeysOnlyDiffBaseStorage
from flux_cluster_generator.utils.rate_limit import retry_delay

from .conftest import make_rsip, make_secret


@pytest.fixture
def handler(config, allowed, store):
    return SecretMirrorHandler(config, allowed, store)


class TestReconcile:
    """Test cases for SecretMirrorHandler.reconcile."""

    def test_creates_rsip_for_eligible_secret(self, handler, store):
        """Test the full mirror of an eligible Secret."""
        secret = make_secret(labels={"type": "cluster", "env": "dev"})

        assert handler.reconcile(secret) == RESULT_CREATED

        rsip = store.rsips["inputs-c1"]
        assert rsip["metadata"]["namespace"] == "flux-apps"
        labels = rsip["metadata"]["labels"]
        assert labels["env"] == "dev"
        assert labels["mirror.fluxcd.io/managed"] == "true"
        assert labels["mirror.fluxcd.io/secretNS"] == "apps"
        assert labels["mirror.fluxcd.io/secretName"] == "c1"
        assert labels["mirror.fluxcd.io/secretKey"] == "config"
        assert rsip["spec"]["type"] == "Static"
        values = rsip["spec"]["defaultValues"]
        assert values["env"] == "dev"
        assert values["kubeSecretNS"] == "apps"
        assert values["kubeSecretName"] == "c1"
        assert values["kubeSecretKey"] == "config"
        assert values["name"] == "c1"

    def test_removing_selector_label_deletes_rsip(self, handler, store):
        """Test that a Secret leaving the selector loses its RSIP."""
        secret = make_secret(labels={"type": "cluster", "env": "dev"})
        handler.reconcile(secret)
        assert "inputs-c1" in store.rsips

        del secret["metadata"]["labels"]["type"]

        assert handler.reconcile(secret) == RESULT_CLEANED
        assert "inputs-c1" not in store.rsips

    def test_second_pass_makes_no_writes(self, handler, store):
        """Test that reconciling an unchanged Secret twice writes once."""
        secret = make_secret(labels={"type": "cluster", "env": "dev"})

        assert handler.reconcile(secret) == RESULT_CREATED
        assert handler.reconcile(secret) == RESULT_UNCHANGED
        assert store.writes == [("create", "inputs-c1")]

    def test_label_change_updates_rsip(self, handler, store):
        """Test that a changed copied label is propagated."""
        secret = make_secret(labels={"type": "cluster", "env": "dev"})
        handler.reconcile(secret)

        secret["metadata"]["labels"]["env"] = "prod"

        assert handler.reconcile(secret) == RESULT_UPDATED
        rsip = store.rsips["inputs-c1"]
        assert rsip["metadata"]["labels"]["env"] == "prod"
        assert rsip["spec"]["defaultValues"]["env"] == "prod"
        assert store.writes[-1] == ("replace", "inputs-c1")

    def test_spec_drift_is_reverted(self, handler, store):
        """Test that an edited RSIP spec is restored."""
        secret = make_secret(labels={"type": "cluster", "env": "dev"})
        handler.reconcile(secret)
        store.rsips["inputs-c1"]["spec"]["defaultValues"]["env"] = "tampered"

        assert handler.reconcile(secret) == RESULT_UPDATED
        assert store.rsips["inputs-c1"]["spec"]["defaultValues"]["env"] == "dev"

    def test_missing_data_key_is_skipped(self, handler, store):
        """Test that a Secret without the kubeconfig key is left alone."""
        store.rsips["inputs-c1"] = make_rsip("inputs-c1", "apps", "c1")
        secret = make_secret(labels={"type": "cluster"}, data_keys=("other",))

        assert handler.reconcile(secret) == RESULT_SKIPPED
        assert store.writes == []
        assert "inputs-c1" in store.rsips

    def test_namespace_not_allowed_cleans_up(self, handler, store):
        """Test that a Secret outside the allowed namespaces is cleaned up."""
        store.rsips["inputs-c1"] = make_rsip("inputs-c1", "elsewhere", "c1")
        secret = make_secret(namespace="elsewhere", labels={"type": "cluster"})

        assert handler.reconcile(secret) == RESULT_CLEANED
        assert "inputs-c1" not in store.rsips

    def test_watch_namespaces_restrict_scope(self, config, allowed, store):
        """Test that an explicit namespace allowlist is honoured."""
        handler = SecretMirrorHandler(dataclasses.replace(config, watch_namespaces=("p-team1",)), allowed, store)
        secret = make_secret(labels={"type": "cluster"})

        assert handler.reconcile(secret) == RESULT_CLEANED
        assert store.rsips == {}

    def test_project_namespace_prefixes_name(self, handler, store):
        """Test that a p-<project> namespace lands in the RSIP name."""
        secret = make_secret(namespace="p-team1", name="c2", labels={"type": "cluster"})

        handler.reconcile(secret)

        rsip = store.rsips["inputs-team1-c2"]
        assert rsip["spec"]["defaultValues"]["project"] == "team1"
        assert rsip["metadata"]["labels"]["mirror.fluxcd.io/project"] == "team1"


class TestApply:
    """Test cases for SecretMirrorHandler.apply collision handling and pruning."""

    def test_refuses_rsip_owned_by_other_secret(self, handler, store):
        """Test that an RSIP mirroring another Secret is not adopted."""
        store.rsips["inputs-c1"] = make_rsip("inputs-c1", "other", "c1")
        secret = make_secret(labels={"type": "cluster"})

        with pytest.raises(NameCollisionError) as exc_info:
            handler.reconcile(secret)

        assert exc_info.value.owner == ("other", "c1")
        assert exc_info.value.requester == ("apps", "c1")
        assert store.writes == []

    def test_adopts_rsip_without_back_reference(self, handler, store):
        """Test that an unlabelled RSIP with the derived name is taken over."""
        store.rsips["inputs-c1"] = make_rsip("inputs-c1")
        secret = make_secret(labels={"type": "cluster"})

        assert handler.reconcile(secret) == RESULT_UPDATED
        assert store.rsips["inputs-c1"]["metadata"]["labels"]["mirror.fluxcd.io/secretName"] == "c1"

    def test_renamed_cluster_replaces_old_rsip(self, handler, store):
        """Test that changing the cluster name label leaves a single RSIP."""
        secret = make_secret(labels={"type": "cluster", "vci.flux.loft.sh/name": "alpha"})
        assert handler.reconcile(secret) == RESULT_CREATED
        assert list(store.rsips) == ["inputs-alpha"]

        secret["metadata"]["labels"]["vci.flux.loft.sh/name"] = "beta"

        assert handler.reconcile(secret) == RESULT_CREATED
        assert list(store.rsips) == ["inputs-beta"]
        assert store.writes[-2:] == [("create", "inputs-beta"), ("delete", "inputs-alpha")]

    def test_stale_rsip_of_other_secret_is_kept(self, handler, store):
        """Test that pruning only touches RSIPs mirroring the same Secret."""
        store.rsips["inputs-c2"] = make_rsip("inputs-c2", "apps", "c2")

        handler.reconcile(make_secret(labels={"type": "cluster"}))

        assert sorted(store.rsips) == ["inputs-c1", "inputs-c2"]

    def test_failed_prune_is_raised(self, handler, store):
        """Test that a stale RSIP that cannot be deleted fails the reconcile."""
        store.rsips["inputs-old"] = make_rsip("inputs-old", "apps", "c1")
        store.fail_delete.add("inputs-old")

        with pytest.raises(CleanupError):
            handler.reconcile(make_secret(labels={"type": "cluster"}))

        assert "inputs-c1" in store.rsips

    def test_create_failure_emits_event_and_raises(self, config, allowed, mock_kopf_event):
        """Test that a failed create is surfaced."""
        store = Mock()
        store.get_input_provider.return_value = None
        store.create_input_provider.side_effect = ApiException(status=500, reason="Internal Server Error")
        handler = SecretMirrorHandler(config, allowed, store)

        with pytest.raises(ApiException):
            handler.reconcile(make_secret(labels={"type": "cluster"}))

        reasons = [call.kwargs["reason"] for call in mock_kopf_event.call_args_list]
        assert reasons == ["RSIPCreateFailed"]

    def test_update_conflict_propagates(self, config, allowed):
        """Test that an optimistic-concurrency conflict is retried by the caller."""
        store = Mock()
        store.get_input_provider.return_value = make_rsip("inputs-c1", "apps", "c1")
        store.replace_input_provider.side_effect = ApiException(status=409, reason="Conflict")
        handler = SecretMirrorHandler(config, allowed, store)

        with pytest.raises(ApiException) as exc_info:
            handler.reconcile(make_secret(labels={"type": "cluster"}))

        assert exc_info.value.status == 409


class TestEnsureAbsence:
    """Test cases for cleanup by back-reference."""

    def test_deletes_all_rsips_pointing_at_secret(self, handler, store):
        """Test that RSIPs are found by label, whatever their name."""
        store.rsips["inputs-c1"] = make_rsip("inputs-c1", "apps", "c1")
        store.rsips["inputs-legacy-name"] = make_rsip("inputs-legacy-name", "apps", "c1")
        store.rsips["inputs-c2"] = make_rsip("inputs-c2", "apps", "c2")

        assert handler.ensure_absence("apps", "c1") == 2
        assert list(store.rsips) == ["inputs-c2"]

    def test_nothing_to_delete(self, handler, store):
        """Test cleanup with no matching RSIPs."""
        assert handler.ensure_absence("apps", "c1") == 0
        assert store.writes == []

    def test_failures_are_aggregated(self, handler, store):
        """Test that every deletion is attempted before failing."""
        store.rsips["inputs-a"] = make_rsip("inputs-a", "apps", "c1")
        store.rsips["inputs-b"] = make_rsip("inputs-b", "apps", "c1")
        store.fail_delete.add("inputs-a")

        with pytest.raises(CleanupError) as exc_info:
            handler.ensure_absence("apps", "c1")

        assert exc_info.value.deleted == 1
        assert exc_info.value.failed == 1
        assert "inputs-b" not in store.rsips
        assert "inputs-a" in store.rsips


class TestSecretFilters:
    """Test cases for the kopf delivery filters."""

    @pytest.fixture(autouse=True)
    def configured(self, handler):
        with patch("flux_cluster_generator.handlers.secret._handler", return_value=handler):
            yield

    def test_eligible_secret_passes(self):
        body = make_secret(labels={"type": "cluster"})
        assert secret_in_scope(body=body, old=None) is True

    def test_transition_to_ineligible_passes(self):
        """Test that losing the selector label still reaches the handler."""
        storage = KeysOnlyDiffBaseStorage(prefix="mirror.fluxcd.io")
        old = storage.build(body=kopf.Body(make_secret(labels={"type": "cluster"})))
        assert "namespace" not in old["metadata"]

        body = make_secret(labels={})
        assert secret_in_scope(body=body, old=old) is True

    def test_never_eligible_is_filtered(self):
        storage = KeysOnlyDiffBaseStorage(prefix="mirror.fluxcd.io")
        old = storage.build(body=kopf.Body(make_secret(labels={"type": "other"})))

        assert secret_in_scope(body=make_secret(labels={}), old=old) is False

    def test_previous_labels_use_current_namespace(self):
        """Test that an ineligible namespace is not let through by old labels."""
        storage = KeysOnlyDiffBaseStorage(prefix="mirror.fluxcd.io")
        old = storage.build(body=kopf.Body(make_secret(namespace="elsewhere", labels={"type": "cluster"})))

        assert secret_in_scope(body=make_secret(namespace="elsewhere", labels={}), old=old) is False

    def test_deleted_event_passes(self):
        assert secret_deleted(type="DELETED", body=make_secret()) is True

    def test_other_events_are_filtered(self):
        assert secret_deleted(type="MODIFIED", body=make_secret()) is False
        assert secret_deleted(type=None, body=make_secret()) is False

    def test_unconfigured_runtime_filters_everything(self):
        with patch("flux_cluster_generator.handlers.secret._handler", return_value=None):
            assert secret_in_scope(body=make_secret(labels={"type": "cluster"})) is False
            assert secret_deleted(type="DELETED", body=make_secret()) is False


class TestKopfHandlers:
    """Test cases for the kopf-registered Secret handlers."""

    def test_collision_retries_after_conflict_delay(self, handler, mock_kopf_event):
        handler.reconcile = Mock(side_effect=NameCollisionError("inputs-c1", ("other", "c1"), ("apps", "c1")))
        body = make_secret()

        with patch("flux_cluster_generator.handlers.secret._handler", return_value=handler):
            with pytest.raises(kopf.TemporaryError) as exc_info:
                handle_secret(body=body, meta=body["metadata"], retry=0)

        assert exc_info.value.delay == CONFLICT_RETRY_DELAY
        assert mock_kopf_event.call_args.kwargs["reason"] == "RSIPConflict"
        assert mock_kopf_event.call_args.kwargs["type"] == "Warning"

    def test_api_error_retries_with_backoff(self, handler):
        handler.reconcile = Mock(side_effect=ApiException(status=500, reason="Internal Server Error"))
        body = make_secret()

        with patch("flux_cluster_generator.handlers.secret._handler", return_value=handler):
            with pytest.raises(kopf.TemporaryError) as exc_info:
                handle_secret(body=body, meta=body["metadata"], retry=3)

        assert exc_info.value.delay == retry_delay(3)
        assert "(500)" in str(exc_info.value)

    def test_unconfigured_runtime_retries(self):
        body = make_secret()
        with patch("flux_cluster_generator.handlers.secret._handler", return_value=None):
            with pytest.raises(kopf.TemporaryError):
                handle_secret(body=body, meta=body["metadata"], retry=0)

    def test_deleted_secret_cleans_up(self, handler, store):
        store.rsips["inputs-c1"] = make_rsip("inputs-c1", "apps", "c1")
        body = make_secret()

        with patch("flux_cluster_generator.handlers.secret._handler", return_value=handler):
            handle_secret_deleted(namespace="apps", name="c1", meta=body["metadata"])

        assert store.rsips == {}

    def test_deleted_secret_cleanup_failure_is_not_raised(self, handler, store):
        """Test that failed cleanup on a watch event is left to the sweep."""
        store.rsips["inputs-c1"] = make_rsip("inputs-c1", "apps", "c1")
        store.fail_delete.add("inputs-c1")
        body = make_secret()

        with patch("flux_cluster_generator.handlers.secret._handler", return_value=handler):
            handle_secret_deleted(namespace="apps", name="c1", meta=body["metadata"])

        assert "inputs-c1" in store.rsips
