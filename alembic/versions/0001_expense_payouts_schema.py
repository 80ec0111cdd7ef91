"""expense payouts baseline schema

Revision ID: 0001_expense_payouts_schema
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_expense_payouts_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    op.execute("CREATE SCHEMA IF NOT EXISTS app;")
    op.execute("CREATE SCHEMA IF NOT EXISTS ledger;")
    op.execute("CREATE SCHEMA IF NOT EXISTS fx;")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.users (
            id bigserial PRIMARY KEY,
            name text,
            email text
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.collectives (
            id bigserial PRIMARY KEY,
            name text NOT NULL,
            currency text NOT NULL,
            host_collective_id bigint REFERENCES app.collectives(id)
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.connected_accounts (
            id bigserial PRIMARY KEY,
            collective_id bigint NOT NULL REFERENCES app.collectives(id),
            service text NOT NULL,
            client_id text NOT NULL,
            token text NOT NULL,
            created_at timestamptz NOT NULL DEFAULT now(),
            deleted_at timestamptz
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.expenses (
            id bigserial PRIMARY KEY,
            collective_id bigint NOT NULL REFERENCES app.collectives(id),
            amount_cents bigint NOT NULL CHECK (amount_cents > 0),
            currency text NOT NULL,
            status text NOT NULL DEFAULT 'PENDING',
            description text NOT NULL DEFAULT '',
            data jsonb NOT NULL DEFAULT '{}'::jsonb,
            payout_method_data jsonb NOT NULL DEFAULT '{}'::jsonb,
            last_edited_by_id bigint REFERENCES app.users(id),
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_expenses_processing_batch
        ON app.expenses ((data->>'payout_batch_id'))
        WHERE status = 'PROCESSING';
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.expense_activities (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            expense_id bigint NOT NULL REFERENCES app.expenses(id),
            collective_id bigint NOT NULL,
            kind text NOT NULL,
            actor_user_id bigint,
            data jsonb NOT NULL DEFAULT '{}'::jsonb,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.diagnostics (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            message text NOT NULL,
            extra jsonb NOT NULL DEFAULT '{}'::jsonb,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS ledger.expense_transactions (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            expense_id bigint NOT NULL REFERENCES app.expenses(id),
            kind text NOT NULL,
            host_id bigint NOT NULL,
            collective_id bigint NOT NULL,
            amount_cents bigint NOT NULL,
            currency text NOT NULL,
            amount_in_host_currency_cents bigint NOT NULL,
            host_currency text NOT NULL,
            host_currency_fx_rate numeric NOT NULL,
            payment_processor_fee_in_host_currency_cents bigint NOT NULL DEFAULT 0,
            provider_payload jsonb NOT NULL DEFAULT '{}'::jsonb,
            created_at timestamptz NOT NULL DEFAULT now(),
            UNIQUE (expense_id, kind)
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS ledger.expense_entries (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            transaction_id uuid NOT NULL REFERENCES ledger.expense_transactions(id),
            dc text NOT NULL CHECK (dc IN ('DEBIT', 'CREDIT')),
            collective_id bigint,
            amount_cents bigint NOT NULL,
            currency text NOT NULL
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS fx.rates (
            from_currency text NOT NULL,
            to_currency text NOT NULL,
            rate numeric NOT NULL CHECK (rate > 0),
            as_of timestamptz NOT NULL DEFAULT now(),
            PRIMARY KEY (from_currency, to_currency, as_of)
        );
        """
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS fx.rates;")
    op.execute("DROP TABLE IF EXISTS ledger.expense_entries;")
    op.execute("DROP TABLE IF EXISTS ledger.expense_transactions;")
    op.execute("DROP TABLE IF EXISTS app.diagnostics;")
    op.execute("DROP TABLE IF EXISTS app.expense_activities;")
    op.execute("DROP TABLE IF EXISTS app.expenses;")
    op.execute("DROP TABLE IF EXISTS app.connected_accounts;")
    op.execute("DROP TABLE IF EXISTS app.collectives;")
    op.execute("DROP TABLE IF EXISTS app.users;")
