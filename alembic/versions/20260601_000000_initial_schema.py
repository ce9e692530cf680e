"""Initial schema for Portal APR

Revision ID: 20260601_000000
Revises: None
Create Date: 2026-06-01 00:00:00.000000

Creates every table of the service:
- users (socios and administrators)
- tarifa_configs (tariff configurations)
- boletas and pagos
- notifications
- chat_conversations and chat_messages

Revision format: YYYYMMDD_HHMMSS_description

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20260601_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""

    # Create users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("rut", sa.String(12), nullable=False),
        sa.Column("nombres", sa.String(100), nullable=False),
        sa.Column("apellidos", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("telefono", sa.String(30), nullable=True),
        sa.Column("direccion", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("activo", sa.Boolean(), nullable=False),
        sa.Column("fecha_ingreso", sa.DateTime(), nullable=False),
        sa.Column("permisos", sa.JSON(), nullable=False),
        sa.Column("codigo_socio", sa.String(20), nullable=True),
        sa.Column("saldo_actual", sa.Float(), nullable=False, server_default="0"),
        sa.Column("deuda_total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("categoria_usuario", sa.String(20), nullable=False, server_default="residencial"),
        sa.Column("medidor", sa.JSON(), nullable=True),
        sa.Column("password_reset_token_hash", sa.String(64), nullable=True),
        sa.Column("password_reset_expires", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_users_rut", "rut", unique=True),
        sa.Index("ix_users_email", "email", unique=True),
        sa.Index("ix_users_role", "role"),
        sa.Index("ix_users_codigo_socio", "codigo_socio", unique=True),
        sa.Index("ix_users_password_reset_token_hash", "password_reset_token_hash"),
    )

    # Create tarifa_configs table
    op.create_table(
        "tarifa_configs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("nombre", sa.String(120), nullable=False),
        sa.Column("descripcion", sa.String(), nullable=True),
        sa.Column("activa", sa.Boolean(), nullable=False),
        sa.Column("estado", sa.String(20), nullable=False),
        sa.Column("fecha_vigencia", sa.DateTime(), nullable=False),
        sa.Column("fecha_vencimiento", sa.DateTime(), nullable=True),
        sa.Column("fecha_pausa", sa.DateTime(), nullable=True),
        sa.Column("cargo_fijo", sa.JSON(), nullable=False),
        sa.Column("escalones", sa.JSON(), nullable=False),
        sa.Column("temporadas", sa.JSON(), nullable=False),
        sa.Column("descuentos", sa.JSON(), nullable=False),
        sa.Column("recargos", sa.JSON(), nullable=False),
        sa.Column("configuracion", sa.JSON(), nullable=False),
        sa.Column("creado_por", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("modificado_por", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_tarifa_configs_activa", "activa"),
    )

    # Create boletas table
    op.create_table(
        "boletas",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("numero_boleta", sa.String(20), nullable=False),
        sa.Column("socio_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("fecha_emision", sa.DateTime(), nullable=False),
        sa.Column("fecha_vencimiento", sa.DateTime(), nullable=False),
        sa.Column("periodo", sa.String(40), nullable=False),
        sa.Column("lectura_anterior", sa.Float(), nullable=False),
        sa.Column("lectura_actual", sa.Float(), nullable=False),
        sa.Column("consumo_m3", sa.Float(), nullable=False),
        sa.Column("monto_total", sa.Float(), nullable=False),
        sa.Column("estado", sa.String(20), nullable=False),
        sa.Column("pagada", sa.Boolean(), nullable=False),
        sa.Column("fecha_pago", sa.DateTime(), nullable=True),
        sa.Column("detalle", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_boletas_numero_boleta", "numero_boleta", unique=True),
        sa.Index("ix_boletas_socio_id", "socio_id"),
        sa.Index("ix_boletas_fecha_emision", "fecha_emision"),
        sa.Index("ix_boletas_fecha_vencimiento", "fecha_vencimiento"),
        sa.Index("ix_boletas_estado", "estado"),
    )

    # Create pagos table
    op.create_table(
        "pagos",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("boleta_id", sa.Integer(), sa.ForeignKey("boletas.id"), nullable=False),
        sa.Column("socio_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("monto", sa.Float(), nullable=False),
        sa.Column("fecha_pago", sa.DateTime(), nullable=False),
        sa.Column("metodo_pago", sa.String(20), nullable=False),
        sa.Column("estado_pago", sa.String(20), nullable=False),
        sa.Column("transaction_id", sa.String(120), nullable=False),
        sa.Column("external_reference", sa.String(120), nullable=True),
        sa.Column("detalles_pago", sa.JSON(), nullable=False),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_pagos_boleta_id", "boleta_id"),
        sa.Index("ix_pagos_socio_id", "socio_id"),
        sa.Index("ix_pagos_fecha_pago", "fecha_pago"),
        sa.Index("ix_pagos_estado_pago", "estado_pago"),
        sa.Index("ix_pagos_transaction_id", "transaction_id", unique=True),
        sa.Index("ix_pagos_external_reference", "external_reference"),
    )

    # Create notifications table
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("tipo", sa.String(20), nullable=False),
        sa.Column("titulo", sa.String(200), nullable=False),
        sa.Column("mensaje", sa.String(500), nullable=False),
        sa.Column("leida", sa.Boolean(), nullable=False),
        sa.Column("referencia_tipo", sa.String(20), nullable=True),
        sa.Column("referencia_id", sa.Integer(), nullable=True),
        sa.Column("metadatos", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_notifications_user_id", "user_id"),
        sa.Index("ix_notifications_leida", "leida"),
        sa.Index("ix_notifications_created_at", "created_at"),
    )

    # Create chat_conversations table
    op.create_table(
        "chat_conversations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("socio_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("socio_name", sa.String(200), nullable=False),
        sa.Column("admin_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("admin_name", sa.String(200), nullable=True),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("last_message", sa.String(1000), nullable=True),
        sa.Column("last_message_time", sa.DateTime(), nullable=True),
        sa.Column("unread_socio", sa.Integer(), nullable=False),
        sa.Column("unread_admin", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_chat_conversations_socio_id", "socio_id", unique=True),
        sa.Index("ix_chat_conversations_status", "status"),
        sa.Index("ix_chat_conversations_last_message_time", "last_message_time"),
    )

    # Create chat_messages table
    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("conversation_id", sa.Integer(), sa.ForeignKey("chat_conversations.id"), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("sender_type", sa.String(20), nullable=False),
        sa.Column("sender_name", sa.String(200), nullable=False),
        sa.Column("content", sa.String(1000), nullable=False),
        sa.Column("message_type", sa.String(10), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("edited", sa.Boolean(), nullable=False),
        sa.Column("edited_at", sa.DateTime(), nullable=True),
        sa.Column("reply_to_id", sa.Integer(), sa.ForeignKey("chat_messages.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_chat_messages_conversation_id", "conversation_id"),
        sa.Index("ix_chat_messages_sender_id", "sender_id"),
        sa.Index("ix_chat_messages_created_at", "created_at"),
    )


def downgrade() -> None:
    """Drop all tables created in upgrade."""
    op.drop_table("chat_messages")
    op.drop_table("chat_conversations")
    op.drop_table("notifications")
    op.drop_table("pagos")
    op.drop_table("boletas")
    op.drop_table("tarifa_configs")
    op.drop_table("users")
