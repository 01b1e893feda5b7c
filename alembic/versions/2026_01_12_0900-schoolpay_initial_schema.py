"""initial_schema

Revision ID: schoolpay_initial_20260112
Revises:
Create Date: 2026-01-12 09:00:00.000000

Guardians, students, wallets, virtual accounts, transactions, webhook log,
student import staging and audit log.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'schoolpay_initial_20260112'
down_revision = None
branch_labels = None
depends_on = None

ENUM_TYPES = (
    'membership_status',
    'boarding_status',
    'transaction_type',
    'transaction_category',
    'transaction_status',
    'actor_role',
)


def _base_columns():
    return [
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'guardians',
        *_base_columns(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_guardians_id', 'guardians', ['id'])
    op.create_index('ix_guardians_email', 'guardians', ['email'], unique=True)

    op.create_table(
        'students',
        *_base_columns(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('registration_number', sa.String(length=50), nullable=False),
        sa.Column('admission_number', sa.String(length=50), nullable=True),
        sa.Column('class_level', sa.String(length=50), nullable=True),
        sa.Column('guardian_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('school_fees', sa.Numeric(20, 2), nullable=False, server_default='0'),
        sa.Column('debt_balance', sa.Numeric(20, 2), nullable=False, server_default='0'),
        sa.Column(
            'membership_status',
            sa.Enum('MEMBER', 'NON_MEMBER', name='membership_status', create_constraint=True),
            nullable=False,
            server_default='NON_MEMBER',
        ),
        sa.Column(
            'boarding_status',
            sa.Enum('BOARDER', 'DAY', name='boarding_status', create_constraint=True),
            nullable=False,
            server_default='DAY',
        ),
        sa.ForeignKeyConstraint(['guardian_id'], ['guardians.id'], name='fk_students_guardian_id'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_students_id', 'students', ['id'])
    op.create_index('ix_students_email', 'students', ['email'], unique=True)
    op.create_index('ix_students_registration_number', 'students', ['registration_number'], unique=True)
    op.create_index('ix_students_guardian_id', 'students', ['guardian_id'])

    op.create_table(
        'wallets',
        *_base_columns(),
        sa.Column('beneficiary_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('balance', sa.Numeric(20, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='NGN'),
        sa.ForeignKeyConstraint(['beneficiary_id'], ['students.id'], name='fk_wallets_beneficiary_id'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('balance >= 0', name='check_wallets_balance_non_negative'),
    )
    op.create_index('ix_wallets_id', 'wallets', ['id'])
    op.create_index('ix_wallets_beneficiary_id', 'wallets', ['beneficiary_id'], unique=True)

    op.create_table(
        'virtual_accounts',
        *_base_columns(),
        sa.Column('beneficiary_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('provider_customer_code', sa.String(length=100), nullable=False),
        sa.Column('account_number', sa.String(length=20), nullable=False),
        sa.Column('account_name', sa.String(length=255), nullable=False),
        sa.Column('bank_name', sa.String(length=100), nullable=False),
        sa.Column('bank_code', sa.String(length=20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('total_received', sa.Numeric(20, 2), nullable=False, server_default='0'),
        sa.Column('last_payment_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['beneficiary_id'], ['students.id'], name='fk_virtual_accounts_beneficiary_id'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_virtual_accounts_id', 'virtual_accounts', ['id'])
    op.create_index('ix_virtual_accounts_beneficiary_id', 'virtual_accounts', ['beneficiary_id'])
    op.create_index('ix_virtual_accounts_account_number', 'virtual_accounts', ['account_number'], unique=True)
    # At most one active account per student
    op.create_index(
        'uq_virtual_accounts_active_beneficiary',
        'virtual_accounts',
        ['beneficiary_id'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'transactions',
        *_base_columns(),
        sa.Column('beneficiary_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('wallet_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('type', sa.Enum('CREDIT', 'DEBIT', name='transaction_type', create_constraint=True), nullable=False),
        sa.Column(
            'category',
            sa.Enum(
                'FEE_PAYMENT', 'WALLET_TOPUP', 'CANTEEN', 'BOOKS', 'TRANSPORT', 'REVERSAL', 'OTHER',
                name='transaction_category',
                create_constraint=True,
            ),
            nullable=False,
        ),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'COMPLETED', 'FAILED', 'REVERSED', name='transaction_status', create_constraint=True),
            nullable=False,
            server_default='PENDING',
        ),
        sa.Column('amount', sa.Numeric(20, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='NGN'),
        sa.Column('reference', sa.String(length=100), nullable=False),
        sa.Column('provider_reference', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('payment_channel', sa.String(length=50), nullable=True),
        sa.Column('payload_snapshot', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['beneficiary_id'], ['students.id'], name='fk_transactions_beneficiary_id'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], name='fk_transactions_wallet_id'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='check_transactions_amount_positive'),
    )
    op.create_index('ix_transactions_id', 'transactions', ['id'])
    op.create_index('ix_transactions_beneficiary_id', 'transactions', ['beneficiary_id'])
    op.create_index('ix_transactions_wallet_id', 'transactions', ['wallet_id'])
    op.create_index('ix_transactions_type', 'transactions', ['type'])
    op.create_index('ix_transactions_category', 'transactions', ['category'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index('ix_transactions_reference', 'transactions', ['reference'], unique=True)
    # Idempotency key for webhook credits (NULLs allowed for internal movements)
    op.create_index('uq_transactions_provider_reference', 'transactions', ['provider_reference'], unique=True)

    op.create_table(
        'webhook_events',
        *_base_columns(),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('provider_reference', sa.String(length=255), nullable=True),
        sa.Column('raw_payload', sa.JSON(), nullable=False),
        sa.Column('signature_valid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_webhook_events_id', 'webhook_events', ['id'])
    op.create_index('ix_webhook_events_event_type', 'webhook_events', ['event_type'])
    op.create_index('ix_webhook_events_provider_reference', 'webhook_events', ['provider_reference'])
    op.create_index('ix_webhook_events_processed', 'webhook_events', ['processed'])
    op.create_index('ix_webhook_events_received_at', 'webhook_events', ['received_at'])

    op.create_table(
        'student_import_staging',
        *_base_columns(),
        sa.Column('sn', sa.String(length=20), nullable=True),
        sa.Column('names', sa.String(length=255), nullable=True),
        sa.Column('surname', sa.String(length=100), nullable=True),
        sa.Column('class_level', sa.String(length=50), nullable=True),
        sa.Column('registration_number', sa.String(length=50), nullable=True),
        sa.Column('membership', sa.String(length=20), nullable=True),
        sa.Column('boarding', sa.String(length=20), nullable=True),
        sa.Column('school_fees', sa.String(length=50), nullable=True),
        sa.Column('debts', sa.String(length=50), nullable=True),
        sa.Column('parent_email', sa.String(length=255), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('student_uuid', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('parent_uuid', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_student_import_staging_id', 'student_import_staging', ['id'])
    op.create_index('ix_student_import_staging_registration_number', 'student_import_staging', ['registration_number'])
    op.create_index('ix_student_import_staging_processed', 'student_import_staging', ['processed'])

    op.create_table(
        'audit_logs',
        *_base_columns(),
        sa.Column('actor_subject', sa.String(length=255), nullable=True),
        sa.Column(
            'actor_role',
            sa.Enum('ADMIN', 'PARENT', 'STUDENT', 'SYSTEM', name='actor_role', create_constraint=True),
            nullable=False,
        ),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('before', sa.JSON(), nullable=True),
        sa.Column('after', sa.JSON(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip', sa.String(length=45), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])
    op.create_index('ix_audit_logs_actor_subject', 'audit_logs', ['actor_subject'])
    op.create_index('ix_audit_logs_actor_role', 'audit_logs', ['actor_role'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('student_import_staging')
    op.drop_table('webhook_events')
    op.drop_table('transactions')
    op.drop_table('virtual_accounts')
    op.drop_table('wallets')
    op.drop_table('students')
    op.drop_table('guardians')

    bind = op.get_bind()
    for enum_name in ENUM_TYPES:
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
