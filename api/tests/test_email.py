"""
Email templates and test-mode sending.
"""

import pytest

from core import email


class TestTemplates:
    def test_contact_notification_escapes_lead_fields(self):
        message = email.contact_notification(
            {
                "name": "Ada <script>",
                "email": "ada@example.com",
                "company": None,
                "interest": "general",
                "message": "<b>hello</b>",
            }
        )
        assert "&lt;script&gt;" in message.html
        assert "<script>" not in message.html
        assert "&lt;b&gt;hello&lt;/b&gt;" in message.html
        # Missing company renders as a dash.
        assert "<strong>Company:</strong> -" in message.html
        assert message.subject == "New Contact Form Submission from Ada <script>"

    def test_contact_confirmation_defaults_name(self):
        message = email.contact_confirmation({"email": "ada@example.com"})
        assert message.to == ["ada@example.com"]
        assert "Thank you, there" in message.html

    def test_layout_signs_with_sender_name(self, monkeypatch):
        monkeypatch.setenv("SENDGRID_FROM_NAME", "ZenCap & Co")
        message = email.newsletter_welcome("reader@example.com")
        assert "The ZenCap &amp; Co Team" in message.html

    def test_purchase_confirmation_has_text_part(self):
        message = email.purchase_confirmation(
            email="buyer@example.com",
            customer_name="Grace",
            model_title="Multifamily Development Model",
            session_id="cs_test_123",
        )
        order_url = "https://zencap.test/checkout/success?session_id=cs_test_123"
        assert f'href="{order_url}"' in message.html
        assert message.text == f"Your purchase of Multifamily Development Model is complete. Download: {order_url}"

    def test_alert_email_includes_metric_data(self):
        alert = {
            "id": "alert_1_abc",
            "type": "performance",
            "severity": "high",
            "message": "LCP > 4s",
            "timestamp": "2024-01-01T00:00:00+00:00",
            "metric": {"name": "LCP", "value": 4200},
        }
        message = email.alert_email(alert, ["ops@zencap.co"])
        assert message.subject == "[HIGH] performance: LCP > 4s"
        assert "Metric Data" in message.html
        assert "&#34;value&#34;: 4200" in message.html
        assert "Error Data" not in message.html


class TestSend:
    async def test_test_mode_logs_instead_of_sending(self):
        sent = await email.send_email(email.newsletter_welcome("reader@example.com"))
        assert sent is False

    async def test_message_without_recipients_is_rejected(self):
        with pytest.raises(email.EmailError):
            await email.send_email(email.EmailMessage(to=[" "], subject="x", html="<p>x</p>"))
