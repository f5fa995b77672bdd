import smtplib
import threading
import pytest
from datetime import datetime
from unittest.mock import MagicMock

from activecore.notifications_service import mailer, sweep


@pytest.fixture
def smtp_settings(mocker):
    mocker.patch.multiple(
        "activecore.notifications_service.mailer",
        SMTP_HOST="smtp.example.com",
        SMTP_PORT=587,
        SMTP_USER="gym@example.com",
        SMTP_PASS="app-password",
        FROM_EMAIL="gym@example.com",
    )


# --- MAILER ---
def test_send_email_not_configured(mocker):
    mocker.patch("activecore.notifications_service.mailer.SMTP_HOST", None)
    smtp = mocker.patch("activecore.notifications_service.mailer.smtplib.SMTP")

    assert mailer.send_email("juan@example.com", "Hi", "<p>Hi</p>") is False
    assert not smtp.called


def test_send_email_starttls(mocker, smtp_settings):
    smtp = mocker.patch("activecore.notifications_service.mailer.smtplib.SMTP")
    server = smtp.return_value.__enter__.return_value

    assert mailer.send_email("juan@example.com", "Hi", "<p>Hi</p>") is True

    smtp.assert_called_once_with("smtp.example.com", 587, timeout=mailer.SMTP_TIMEOUT_SECONDS)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("gym@example.com", "app-password")
    message = server.send_message.call_args[0][0]
    assert message["To"] == "juan@example.com"
    assert message["Subject"] == "Hi"


def test_send_email_ssl_port(mocker, smtp_settings):
    mocker.patch("activecore.notifications_service.mailer.SMTP_PORT", 465)
    smtp_ssl = mocker.patch("activecore.notifications_service.mailer.smtplib.SMTP_SSL")
    smtp = mocker.patch("activecore.notifications_service.mailer.smtplib.SMTP")

    assert mailer.send_email("juan@example.com", "Hi", "<p>Hi</p>") is True
    assert smtp_ssl.called
    assert not smtp.called


def test_send_email_smtp_failure(mocker, smtp_settings):
    smtp = mocker.patch("activecore.notifications_service.mailer.smtplib.SMTP")
    smtp.return_value.__enter__.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad creds")

    assert mailer.send_email("juan@example.com", "Hi", "<p>Hi</p>") is False


# --- SWEEP ---
def test_sweep_skips_without_smtp(mocker, mock_db):
    mocker.patch("activecore.notifications_service.mailer.smtp_configured", return_value=False)
    _, mock_cursor = mock_db

    result = sweep.notify_inactive_members(3)

    assert result["success"] is False
    assert result["notified"] == 0
    assert not mock_cursor.execute.called


def test_sweep_sends_and_logs(mocker, mock_db):
    mocker.patch("activecore.notifications_service.mailer.smtp_configured", return_value=True)
    send = mocker.patch("activecore.notifications_service.mailer.send_email", return_value=True)
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchall.return_value = [
        {"id": 1, "email": "juan@example.com", "first_name": "Juan", "last_check_in": datetime(2025, 5, 1, 7, 0)},
        {"id": 2, "email": "not-an-email", "first_name": "Bad", "last_check_in": None},
        {"id": 3, "email": "maria@example.com", "first_name": "Maria", "last_check_in": None},
        {"id": 4, "email": "pedro@example.com", "first_name": "Pedro", "last_check_in": None},
    ]
    # reminder log lookups for users 1, 3, 4: only Pedro was reminded recently
    mock_cursor.fetchone.side_effect = [None, None, {"id": 50}]

    result = sweep.notify_inactive_members(3)

    assert result == {"success": True, "notified": 2}
    assert [c[0][0] for c in send.call_args_list] == ["juan@example.com", "maria@example.com"]
    assert "May 01, 2025" in send.call_args_list[0][0][2]

    log_inserts = [c for c in mock_cursor.execute.call_args_list if "INSERT INTO notification_logs" in c[0][0]]
    assert [c[0][1] for c in log_inserts] == [(1, "absent_reminder"), (3, "absent_reminder")]
    assert mock_conn.commit.call_count == 2


def test_sweep_failed_send_not_logged(mocker, mock_db):
    mocker.patch("activecore.notifications_service.mailer.smtp_configured", return_value=True)
    mocker.patch("activecore.notifications_service.mailer.send_email", return_value=False)
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchall.return_value = [
        {"id": 1, "email": "juan@example.com", "first_name": "Juan", "last_check_in": None},
    ]
    mock_cursor.fetchone.return_value = None

    assert sweep.notify_inactive_members(3) == {"success": True, "notified": 0}
    assert not mock_conn.commit.called


def test_scheduler_runs_then_stops(mocker):
    stop = threading.Event()
    notify = mocker.patch("activecore.notifications_service.sweep.notify_inactive_members",
                          side_effect=lambda days: stop.set())

    thread = sweep.start_notification_scheduler(threshold_days=5, interval=3600, initial_delay=0, stop_event=stop)
    thread.join(timeout=2)

    assert not thread.is_alive()
    assert thread.daemon
    notify.assert_called_once_with(5)


def test_scheduler_survives_failed_run(mocker):
    stop = threading.Event()
    calls = []

    def flaky(days):
        calls.append(days)
        if len(calls) == 1:
            raise RuntimeError("db down")
        stop.set()

    mocker.patch("activecore.notifications_service.sweep.notify_inactive_members", side_effect=flaky)

    thread = sweep.start_notification_scheduler(interval=0.01, initial_delay=0, stop_event=stop)
    thread.join(timeout=2)

    assert len(calls) == 2


def test_scheduler_stopped_before_first_run(mocker):
    stop = threading.Event()
    stop.set()
    notify = mocker.patch("activecore.notifications_service.sweep.notify_inactive_members")

    thread = sweep.start_notification_scheduler(initial_delay=0.01, stop_event=stop)
    thread.join(timeout=2)

    assert not notify.called


# --- ROUTES ---
def test_notify_inactive_endpoint(client, mocker, admin_headers):
    run = mocker.patch("activecore.notifications_service.sweep.notify_inactive_members",
                       return_value={"success": True, "notified": 4})

    response = client.post("/api/admin/attendance/notify-inactive", json={"thresholdDays": 7},
                           headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()["notified"] == 4
    run.assert_called_once_with(7)


def test_notify_inactive_requires_admin(client, member_headers):
    response = client.post("/api/admin/attendance/notify-inactive", json={}, headers=member_headers)
    assert response.status_code == 403


def test_notify_inactive_bad_threshold(client, admin_headers):
    response = client.post("/api/admin/attendance/notify-inactive", json={"thresholdDays": "soon"},
                           headers=admin_headers)
    assert response.status_code == 400


def test_test_email_endpoint(client, mocker, admin_headers):
    send = mocker.patch("activecore.notifications_service.mailer.send_email", return_value=True)

    response = client.post("/api/admin/attendance/test-email", json={"to": "admin@example.com"},
                           headers=admin_headers)

    assert response.status_code == 200
    assert send.call_args[0][0] == "admin@example.com"


def test_test_email_missing_recipient(client, admin_headers):
    response = client.post("/api/admin/attendance/test-email", json={}, headers=admin_headers)
    assert response.status_code == 400


def test_test_email_smtp_failure(client, mocker, admin_headers):
    mocker.patch("activecore.notifications_service.mailer.send_email", return_value=False)

    response = client.post("/api/admin/attendance/test-email", json={"to": "admin@example.com"},
                           headers=admin_headers)

    assert response.status_code == 500
