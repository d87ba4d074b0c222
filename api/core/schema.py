"""
Relational schema, created with inline `CREATE TABLE IF NOT EXISTS` statements.

Every statement is idempotent so `ensure_schema()` can run on each deploy.
Uniqueness and status values are enforced here, by Postgres, not by the
feature code: several repositories rely on `ON CONFLICT` targets declared below.
"""

from __future__ import annotations

import logging

from . import db

logger = logging.getLogger(__name__)

STATEMENTS: tuple[str, ...] = (
    # -- accounts --------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS users (
      id BIGSERIAL PRIMARY KEY,
      email VARCHAR(320) NOT NULL UNIQUE,
      name VARCHAR(255),
      password_hash TEXT NOT NULL,
      role VARCHAR(20) NOT NULL DEFAULT 'customer'
        CHECK (role IN ('customer', 'admin')),
      is_active BOOLEAN NOT NULL DEFAULT true,
      last_login_at TIMESTAMPTZ,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS refresh_tokens (
      id BIGSERIAL PRIMARY KEY,
      user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
      token_hash VARCHAR(64) NOT NULL UNIQUE,
      expires_at TIMESTAMPTZ NOT NULL,
      revoked_at TIMESTAMPTZ,
      replaced_by_token_id BIGINT REFERENCES refresh_tokens(id),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      last_used_at TIMESTAMPTZ,
      user_agent TEXT,
      ip_address VARCHAR(45)
    )
    """,
    # -- content ---------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS models (
      id SERIAL PRIMARY KEY,
      slug VARCHAR(255) NOT NULL UNIQUE,
      title VARCHAR(255) NOT NULL,
      description TEXT,
      category VARCHAR(100),
      thumbnail_url TEXT,
      file_url TEXT,
      excel_url TEXT,
      price NUMERIC(10, 2) CHECK (price IS NULL OR price >= 0),
      status VARCHAR(50) NOT NULL DEFAULT 'active'
        CHECK (status IN ('active', 'draft', 'archived')),
      tags TEXT,
      published_at TIMESTAMPTZ DEFAULT now(),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS insights (
      id SERIAL PRIMARY KEY,
      slug VARCHAR(255) NOT NULL UNIQUE,
      title VARCHAR(255) NOT NULL,
      summary TEXT NOT NULL DEFAULT '',
      content TEXT NOT NULL DEFAULT '',
      author VARCHAR(100) NOT NULL DEFAULT '',
      cover_image_url TEXT NOT NULL DEFAULT '',
      status VARCHAR(50) NOT NULL DEFAULT 'draft'
        CHECK (status IN ('draft', 'published', 'archived')),
      tags TEXT NOT NULL DEFAULT '',
      published_at TIMESTAMPTZ,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    # -- commerce --------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS customers (
      id SERIAL PRIMARY KEY,
      email VARCHAR(320) NOT NULL UNIQUE,
      name VARCHAR(255),
      stripe_customer_id VARCHAR(255) UNIQUE,
      metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
      id SERIAL PRIMARY KEY,
      stripe_session_id VARCHAR(255) NOT NULL UNIQUE,
      stripe_payment_intent_id VARCHAR(255),
      customer_id INTEGER REFERENCES customers(id),
      customer_email VARCHAR(320) NOT NULL DEFAULT '',
      customer_name VARCHAR(255) NOT NULL DEFAULT '',
      model_id INTEGER REFERENCES models(id) ON DELETE SET NULL,
      model_slug VARCHAR(255) NOT NULL DEFAULT '',
      model_title VARCHAR(255) NOT NULL DEFAULT '',
      amount NUMERIC(10, 2) NOT NULL CHECK (amount > 0),
      currency VARCHAR(3) NOT NULL DEFAULT 'usd',
      status VARCHAR(50) NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'completed', 'failed', 'cancelled', 'refunded')),
      download_expires_at TIMESTAMPTZ,
      download_count INTEGER NOT NULL DEFAULT 0 CHECK (download_count >= 0),
      max_downloads INTEGER NOT NULL DEFAULT 3 CHECK (max_downloads > 0),
      metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_customer_email ON orders (lower(customer_email))",
    "CREATE INDEX IF NOT EXISTS idx_orders_payment_intent ON orders (stripe_payment_intent_id)",
    # -- leads -----------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS leads (
      id SERIAL PRIMARY KEY,
      name VARCHAR(255) NOT NULL,
      email VARCHAR(320) NOT NULL UNIQUE,
      company VARCHAR(255),
      interest VARCHAR(100) NOT NULL DEFAULT 'general',
      message TEXT,
      ip_address VARCHAR(45),
      user_agent TEXT,
      status VARCHAR(50) NOT NULL DEFAULT 'new'
        CHECK (status IN ('new', 'contacted', 'qualified', 'converted', 'closed')),
      source VARCHAR(100),
      estimated_value NUMERIC(12, 2),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS newsletter_subscribers (
      id SERIAL PRIMARY KEY,
      email VARCHAR(320) NOT NULL UNIQUE,
      ip_address VARCHAR(45),
      user_agent TEXT,
      status VARCHAR(50) NOT NULL DEFAULT 'active'
        CHECK (status IN ('active', 'unsubscribed')),
      source VARCHAR(100) NOT NULL DEFAULT 'website',
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS form_submissions (
      id SERIAL PRIMARY KEY,
      form_type VARCHAR(50) NOT NULL,
      form_data JSONB,
      ip_address VARCHAR(45),
      user_agent TEXT,
      status VARCHAR(50) NOT NULL DEFAULT 'success',
      error_message TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    # -- analytics -------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS analytics_events (
      id BIGSERIAL PRIMARY KEY,
      event_type VARCHAR(100) NOT NULL,
      event_data JSONB NOT NULL DEFAULT '{}'::jsonb,
      ip_address VARCHAR(45),
      user_agent TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_analytics_events_type_time ON analytics_events (event_type, created_at)",
    """
    CREATE TABLE IF NOT EXISTS revenue_events (
      id BIGSERIAL PRIMARY KEY,
      transaction_id VARCHAR(255) NOT NULL UNIQUE,
      model_id INTEGER,
      model_title VARCHAR(255),
      amount NUMERIC(12, 2) NOT NULL,
      currency VARCHAR(3) NOT NULL DEFAULT 'USD',
      customer_email VARCHAR(320),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS daily_revenue (
      date DATE PRIMARY KEY,
      total_revenue NUMERIC(14, 2) NOT NULL DEFAULT 0,
      transaction_count INTEGER NOT NULL DEFAULT 0,
      avg_order_value NUMERIC(12, 2) NOT NULL DEFAULT 0,
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS lead_sources (
      source VARCHAR(100) NOT NULL,
      date DATE NOT NULL,
      lead_count INTEGER NOT NULL DEFAULT 0,
      total_estimated_value NUMERIC(14, 2) NOT NULL DEFAULT 0,
      PRIMARY KEY (source, date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS model_analytics (
      model_id VARCHAR(64) NOT NULL,
      date DATE NOT NULL,
      model_title VARCHAR(255),
      category VARCHAR(100),
      view_count INTEGER NOT NULL DEFAULT 0,
      total_potential_revenue NUMERIC(14, 2) NOT NULL DEFAULT 0,
      PRIMARY KEY (model_id, date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS conversion_funnel (
      step_name VARCHAR(100) NOT NULL,
      date DATE NOT NULL,
      step_number INTEGER NOT NULL DEFAULT 0,
      completion_count INTEGER NOT NULL DEFAULT 0,
      PRIMARY KEY (step_name, date)
    )
    """,
    # -- attribution -----------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS attribution_events (
      id BIGSERIAL PRIMARY KEY,
      event_type VARCHAR(100) NOT NULL,
      event_data JSONB NOT NULL DEFAULT '{}'::jsonb,
      session_id VARCHAR(128),
      ip_address VARCHAR(45),
      user_agent TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS conversions_attributed (
      conversion_id VARCHAR(128) PRIMARY KEY,
      conversion_type VARCHAR(100),
      conversion_value NUMERIC(12, 2) NOT NULL DEFAULT 0,
      session_id VARCHAR(128),
      time_to_conversion_ms BIGINT NOT NULL DEFAULT 0,
      total_touchpoints INTEGER NOT NULL DEFAULT 1,
      first_touch_source VARCHAR(100),
      first_touch_medium VARCHAR(100),
      first_touch_campaign VARCHAR(255),
      last_touch_source VARCHAR(100),
      last_touch_medium VARCHAR(100),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS touchpoint_attributions (
      id BIGSERIAL PRIMARY KEY,
      conversion_id VARCHAR(128) NOT NULL REFERENCES conversions_attributed(conversion_id) ON DELETE CASCADE,
      touchpoint_order INTEGER NOT NULL DEFAULT 0,
      source VARCHAR(100),
      medium VARCHAR(100),
      campaign VARCHAR(255),
      attribution_weight NUMERIC(6, 4) NOT NULL DEFAULT 0,
      attributed_value NUMERIC(12, 2) NOT NULL DEFAULT 0,
      touchpoint_timestamp TIMESTAMPTZ,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS session_tracking (
      session_id VARCHAR(128) PRIMARY KEY,
      first_touch_source VARCHAR(100),
      first_touch_medium VARCHAR(100),
      page_views INTEGER NOT NULL DEFAULT 0,
      last_page_view TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS campaign_interactions (
      id BIGSERIAL PRIMARY KEY,
      session_id VARCHAR(128),
      event_name VARCHAR(100),
      campaign_name VARCHAR(255),
      interaction_data JSONB NOT NULL DEFAULT '{}'::jsonb,
      first_touch_campaign VARCHAR(255),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS source_performance (
      source VARCHAR(100) NOT NULL,
      medium VARCHAR(100) NOT NULL,
      campaign VARCHAR(255) NOT NULL,
      date DATE NOT NULL,
      first_touch_conversions INTEGER NOT NULL DEFAULT 0,
      first_touch_revenue NUMERIC(14, 2) NOT NULL DEFAULT 0,
      last_touch_conversions INTEGER NOT NULL DEFAULT 0,
      last_touch_revenue NUMERIC(14, 2) NOT NULL DEFAULT 0,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      PRIMARY KEY (source, medium, campaign, date)
    )
    """,
    # -- monitoring ------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS performance_metrics (
      id BIGSERIAL PRIMARY KEY,
      metric_name VARCHAR(100) NOT NULL,
      component VARCHAR(100),
      duration DOUBLE PRECISION,
      memory_delta DOUBLE PRECISION,
      exceeds_threshold BOOLEAN NOT NULL DEFAULT false,
      metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
      timestamp TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_performance_metrics_time ON performance_metrics (timestamp)",
    """
    CREATE TABLE IF NOT EXISTS error_logs (
      id BIGSERIAL PRIMARY KEY,
      category VARCHAR(50),
      severity VARCHAR(20) CHECK (severity IN ('low', 'medium', 'high', 'critical')),
      message TEXT,
      stack_trace TEXT,
      url TEXT,
      user_agent TEXT,
      metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
      timestamp TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_error_logs_time ON error_logs (timestamp)",
    """
    CREATE TABLE IF NOT EXISTS monitoring_alerts (
      id BIGSERIAL PRIMARY KEY,
      alert_id VARCHAR(64) NOT NULL UNIQUE,
      alert_type VARCHAR(50) NOT NULL,
      severity VARCHAR(20) NOT NULL,
      severity_level INTEGER NOT NULL,
      message TEXT NOT NULL,
      metric_data JSONB,
      error_data JSONB,
      pattern_data JSONB,
      metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
      source VARCHAR(255),
      timestamp TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS incidents (
      id BIGSERIAL PRIMARY KEY,
      incident_id VARCHAR(64) NOT NULL UNIQUE,
      alert_id VARCHAR(64),
      title TEXT NOT NULL,
      description JSONB,
      severity VARCHAR(20) NOT NULL,
      status VARCHAR(20) NOT NULL DEFAULT 'open',
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS performance_alerts (
      id BIGSERIAL PRIMARY KEY,
      alert_id VARCHAR(64) NOT NULL,
      metric_name VARCHAR(100),
      threshold_value DOUBLE PRECISION,
      actual_value DOUBLE PRECISION,
      timestamp TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS error_patterns (
      id BIGSERIAL PRIMARY KEY,
      pattern_type VARCHAR(100) NOT NULL,
      pattern_message TEXT NOT NULL DEFAULT '',
      pattern_data JSONB NOT NULL DEFAULT '{}'::jsonb,
      occurrence_count INTEGER NOT NULL DEFAULT 0,
      first_seen TIMESTAMPTZ,
      last_seen TIMESTAMPTZ,
      UNIQUE (pattern_type, pattern_message)
    )
    """,
    # -- audit -----------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS security_audit_logs (
      id BIGSERIAL PRIMARY KEY,
      event_id VARCHAR(64) NOT NULL UNIQUE,
      event_type VARCHAR(50) NOT NULL,
      user_id BIGINT,
      ip_address VARCHAR(45),
      user_agent TEXT,
      session_id VARCHAR(128),
      resource_type VARCHAR(50),
      resource_id VARCHAR(255),
      action VARCHAR(50),
      result VARCHAR(20) NOT NULL DEFAULT 'success'
        CHECK (result IN ('success', 'failure', 'error', 'blocked')),
      severity VARCHAR(20) NOT NULL DEFAULT 'info'
        CHECK (severity IN ('info', 'warning', 'error', 'critical')),
      metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
      error_details JSONB,
      retention_until TIMESTAMPTZ,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_audit_event_type ON security_audit_logs (event_type, created_at)",
    """
    CREATE TABLE IF NOT EXISTS security_incidents (
      id BIGSERIAL PRIMARY KEY,
      incident_id VARCHAR(64) NOT NULL UNIQUE,
      alert_id VARCHAR(64),
      incident_type VARCHAR(50) NOT NULL,
      severity VARCHAR(20) NOT NULL,
      user_id BIGINT,
      ip_address VARCHAR(45),
      description TEXT,
      actions_taken TEXT,
      resolved BOOLEAN NOT NULL DEFAULT false,
      resolved_at TIMESTAMPTZ,
      resolved_by BIGINT,
      metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
)


def table_names() -> list[str]:
    names: list[str] = []
    for statement in STATEMENTS:
        text = " ".join(statement.split())
        prefix = "CREATE TABLE IF NOT EXISTS "
        if text.startswith(prefix):
            names.append(text[len(prefix):].split(" ", 1)[0])
    return names


async def ensure_schema() -> int:
    """
    Apply every statement in one transaction. Returns the number applied.
    """
    async with db.transaction() as conn:
        for statement in STATEMENTS:
            await conn.execute(statement)
    logger.info("schema_applied statements=%s", len(STATEMENTS))
    return len(STATEMENTS)
