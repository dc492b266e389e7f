import logging

from app.db import get_db

logger = logging.getLogger("aionet-backend.migrations")

MIGRATIONS = [
    # ---------------- PROFILES ----------------
    """
    CREATE TABLE IF NOT EXISTS user_profiles (
        address TEXT PRIMARY KEY,
        username TEXT,
        username_encrypted TEXT,
        role_tier TEXT DEFAULT 'NOMAD',
        profile_level INTEGER DEFAULT 1,
        current_xp INTEGER DEFAULT 0,
        total_xp INTEGER DEFAULT 0,
        profile_image_blob_id TEXT,
        achievements_data JSONB DEFAULT '[]'::jsonb,
        referral_data JSONB DEFAULT '{}'::jsonb,
        social_links JSONB DEFAULT '[]'::jsonb,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    ALTER TABLE user_profiles ADD COLUMN IF NOT EXISTS affiliate_subscription_status TEXT DEFAULT 'trial';
    """,
    """
    ALTER TABLE user_profiles ADD COLUMN IF NOT EXISTS affiliate_trial_started_at TIMESTAMP WITH TIME ZONE;
    """,
    """
    ALTER TABLE user_profiles ADD COLUMN IF NOT EXISTS affiliate_trial_expires_at TIMESTAMP WITH TIME ZONE;
    """,
    """
    ALTER TABLE user_profiles ADD COLUMN IF NOT EXISTS affiliate_subscription_expires_at TIMESTAMP WITH TIME ZONE;
    """,
    """
    ALTER TABLE user_profiles ADD COLUMN IF NOT EXISTS affiliate_subscription_auto_renew BOOLEAN DEFAULT FALSE;
    """,
    """
    CREATE TABLE IF NOT EXISTS premium_access (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_address TEXT NOT NULL,
        creator_id TEXT NOT NULL,
        channel_id TEXT NOT NULL,
        tier TEXT NOT NULL,
        accessed_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (user_address, creator_id, channel_id, tier)
    );
    """,
    # ---------------- pAION ----------------
    """
    CREATE TABLE IF NOT EXISTS paion_balances (
        user_address TEXT PRIMARY KEY,
        balance NUMERIC DEFAULT 0,
        locked_balance NUMERIC DEFAULT 0,
        total_earned NUMERIC DEFAULT 0,
        total_spent NUMERIC DEFAULT 0,
        last_transaction_at TIMESTAMP WITH TIME ZONE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS paion_transactions (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_address TEXT NOT NULL,
        transaction_type TEXT NOT NULL,
        amount NUMERIC NOT NULL,
        balance_before NUMERIC NOT NULL,
        balance_after NUMERIC NOT NULL,
        description TEXT,
        source_type TEXT,
        source_id TEXT,
        metadata JSONB DEFAULT '{}'::jsonb,
        transaction_hash TEXT,
        status TEXT DEFAULT 'completed',
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # ---------------- AFFILIATE ----------------
    """
    CREATE TABLE IF NOT EXISTS affiliate_subscriptions (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_address TEXT NOT NULL,
        subscription_type TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        price_usdc NUMERIC DEFAULT 0,
        price_sui NUMERIC,
        sui_usd_rate NUMERIC,
        duration_days INTEGER NOT NULL,
        starts_at TIMESTAMP WITH TIME ZONE NOT NULL,
        expires_at TIMESTAMP WITH TIME ZONE NOT NULL,
        transaction_hash TEXT UNIQUE,
        payment_verified BOOLEAN DEFAULT FALSE,
        bonus_source TEXT,
        bonus_reference_id TEXT,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS rafflecraft_bonus_events (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_address TEXT NOT NULL,
        ticket_purchase_id TEXT NOT NULL UNIQUE,
        ticket_transaction_hash TEXT NOT NULL,
        raffle_id TEXT,
        bonus_days INTEGER NOT NULL,
        bonus_applied BOOLEAN DEFAULT FALSE,
        bonus_applied_at TIMESTAMP WITH TIME ZONE,
        affiliate_subscription_id UUID,
        event_detected_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS affiliate_commissions (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        affiliate_address TEXT NOT NULL,
        referred_address TEXT NOT NULL,
        referred_tier TEXT NOT NULL,
        level INTEGER DEFAULT 1,
        amount NUMERIC NOT NULL,
        status TEXT DEFAULT 'pending',
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # ---------------- RAFFLECRAFT ----------------
    """
    CREATE TABLE IF NOT EXISTS weekly_raffles (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        week_number INTEGER UNIQUE NOT NULL,
        start_date TIMESTAMP WITH TIME ZONE NOT NULL,
        end_date TIMESTAMP WITH TIME ZONE NOT NULL,
        status TEXT DEFAULT 'active',
        prize_pool_sui NUMERIC DEFAULT 0,
        ticket_price_sui NUMERIC DEFAULT 1,
        total_tickets_sold INTEGER DEFAULT 0,
        winner_address TEXT,
        winning_ticket_number INTEGER,
        winning_transaction_hash TEXT,
        winner_selected_at TIMESTAMP WITH TIME ZONE,
        prize_distributed_at TIMESTAMP WITH TIME ZONE,
        quiz_question_id UUID,
        max_attempts_per_user INTEGER DEFAULT 1,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS quiz_questions (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        week_number INTEGER NOT NULL,
        question_text TEXT NOT NULL,
        question_type TEXT DEFAULT 'multiple_choice',
        options JSONB DEFAULT '[]'::jsonb,
        correct_answer TEXT NOT NULL,
        explanation TEXT,
        difficulty TEXT DEFAULT 'medium',
        category TEXT DEFAULT 'general',
        points_reward INTEGER DEFAULT 10,
        is_active BOOLEAN DEFAULT TRUE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS user_quiz_attempts (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_address TEXT NOT NULL,
        week_number INTEGER NOT NULL,
        quiz_question_id UUID NOT NULL,
        user_answer TEXT NOT NULL,
        is_correct BOOLEAN NOT NULL,
        attempt_number INTEGER DEFAULT 1,
        time_taken_seconds INTEGER,
        points_earned INTEGER DEFAULT 0,
        can_mint_ticket BOOLEAN DEFAULT FALSE,
        attempted_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS raffle_tickets (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        week_number INTEGER NOT NULL,
        ticket_number INTEGER NOT NULL,
        owner_address TEXT NOT NULL,
        transaction_hash TEXT UNIQUE NOT NULL,
        block_number BIGINT,
        transaction_timestamp TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        amount_paid_sui NUMERIC NOT NULL,
        gas_fee_sui NUMERIC,
        minted_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        is_winning_ticket BOOLEAN DEFAULT FALSE,
        UNIQUE (week_number, ticket_number)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS raffle_winners (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        week_number INTEGER NOT NULL,
        winner_address TEXT NOT NULL,
        winning_ticket_id UUID NOT NULL,
        prize_amount_sui NUMERIC DEFAULT 0,
        prize_distribution_hash TEXT,
        total_tickets_in_raffle INTEGER DEFAULT 0,
        selection_method TEXT DEFAULT 'random',
        selection_timestamp TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        prize_claimed BOOLEAN DEFAULT FALSE,
        prize_claimed_at TIMESTAMP WITH TIME ZONE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # ---------------- ROYALTIES ----------------
    """
    CREATE TABLE IF NOT EXISTS royalties_distributions (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        amount_sui NUMERIC NOT NULL,
        amount_usd NUMERIC DEFAULT 0,
        recipient_count INTEGER DEFAULT 0,
        recipient_addresses TEXT[] DEFAULT '{}',
        transaction_hash TEXT,
        status TEXT DEFAULT 'pending',
        distributed_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS royalties_wallet_snapshots (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        snapshot_date DATE NOT NULL,
        wallet_address TEXT NOT NULL,
        balance_sui NUMERIC NOT NULL,
        balance_usd NUMERIC DEFAULT 0,
        total_distributed_to_date NUMERIC DEFAULT 0,
        royal_holders_count INTEGER DEFAULT 0,
        snapshot_type TEXT DEFAULT 'manual',
        metadata JSONB DEFAULT '{}'::jsonb,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # ---------------- CHANNEL REPORTS ----------------
    """
    CREATE TABLE IF NOT EXISTS channel_reports (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        reporter_address TEXT NOT NULL,
        channel_id TEXT NOT NULL,
        channel_name TEXT NOT NULL,
        creator_address TEXT NOT NULL,
        creator_name TEXT,
        report_category TEXT NOT NULL,
        report_description TEXT NOT NULL,
        status TEXT DEFAULT 'pending',
        admin_notes TEXT,
        resolved_by TEXT,
        resolved_at TIMESTAMP WITH TIME ZONE,
        severity TEXT DEFAULT 'medium',
        priority INTEGER DEFAULT 3,
        evidence_urls JSONB DEFAULT '[]'::jsonb,
        metadata JSONB DEFAULT '{}'::jsonb,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS channel_report_statistics (
        channel_id TEXT PRIMARY KEY,
        channel_name TEXT,
        creator_address TEXT,
        total_reports INTEGER DEFAULT 0,
        pending_reports INTEGER DEFAULT 0,
        resolved_reports INTEGER DEFAULT 0,
        dismissed_reports INTEGER DEFAULT 0,
        content_mismatch_count INTEGER DEFAULT 0,
        not_delivering_count INTEGER DEFAULT 0,
        inactive_channel_count INTEGER DEFAULT 0,
        inappropriate_content_count INTEGER DEFAULT 0,
        spam_or_scam_count INTEGER DEFAULT 0,
        other_count INTEGER DEFAULT 0,
        is_flagged BOOLEAN DEFAULT FALSE,
        warning_level TEXT DEFAULT 'none',
        last_report_date TIMESTAMP WITH TIME ZONE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # ---------------- NOTIFICATIONS ----------------
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_address TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        type TEXT NOT NULL,
        category TEXT NOT NULL,
        priority INTEGER DEFAULT 1,
        read BOOLEAN DEFAULT FALSE,
        action_url TEXT,
        action_label TEXT,
        image_url TEXT,
        metadata JSONB DEFAULT '{}'::jsonb,
        scheduled_for TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        expires_at TIMESTAMP WITH TIME ZONE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS notification_settings (
        user_address TEXT PRIMARY KEY,
        browser_enabled BOOLEAN DEFAULT TRUE,
        email_enabled BOOLEAN DEFAULT FALSE,
        disabled_categories JSONB DEFAULT '[]'::jsonb,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # ---------------- BOTS ----------------
    """
    CREATE TABLE IF NOT EXISTS followed_bots (
        user_address TEXT NOT NULL,
        bot_id TEXT NOT NULL,
        name TEXT NOT NULL,
        type TEXT NOT NULL,
        status TEXT DEFAULT 'active',
        followed_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        last_update TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        cycle_start_date TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        cycles_paid INTEGER DEFAULT 1,
        is_paid BOOLEAN DEFAULT TRUE,
        cycle_start_profit NUMERIC,
        current_profit NUMERIC,
        cycle_target_profit NUMERIC,
        profit_percentage NUMERIC DEFAULT 0,
        PRIMARY KEY (user_address, bot_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS bot_cycle_payments (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_address TEXT NOT NULL,
        bot_id TEXT NOT NULL,
        cycle_number INTEGER NOT NULL,
        amount_usdc NUMERIC NOT NULL,
        transaction_hash TEXT,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # ---------------- ACADEMY ----------------
    """
    CREATE TABLE IF NOT EXISTS courses (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        title TEXT NOT NULL,
        description TEXT,
        icon_name TEXT,
        duration TEXT,
        difficulty TEXT DEFAULT 'Beginner',
        price NUMERIC,
        required_tier TEXT,
        is_locked BOOLEAN DEFAULT FALSE,
        students_count INTEGER DEFAULT 0,
        rating NUMERIC DEFAULT 0,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS lessons (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        course_id UUID NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        description TEXT,
        duration TEXT,
        video_url TEXT,
        order_index INTEGER DEFAULT 0,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS user_course_progress (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_address TEXT NOT NULL,
        course_id UUID NOT NULL,
        lesson_id UUID NOT NULL,
        is_completed BOOLEAN DEFAULT TRUE,
        completed_at TIMESTAMP WITH TIME ZONE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (user_address, lesson_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS course_purchases (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_address TEXT NOT NULL,
        course_id UUID NOT NULL,
        price_paid NUMERIC NOT NULL,
        transaction_hash TEXT,
        purchase_date TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        is_verified BOOLEAN DEFAULT FALSE,
        UNIQUE (user_address, course_id)
    );
    """,
    # ---------------- CHANNEL SUBSCRIPTIONS ----------------
    """
    CREATE TABLE IF NOT EXISTS channel_subscriptions (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_address TEXT NOT NULL,
        creator_address TEXT NOT NULL,
        channel_id TEXT NOT NULL,
        channel_name TEXT,
        channel_type TEXT DEFAULT 'free',
        subscription_status TEXT DEFAULT 'active',
        price_paid NUMERIC DEFAULT 0,
        transaction_hash TEXT,
        joined_date TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        expiry_date TIMESTAMP WITH TIME ZONE,
        last_accessed TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (user_address, channel_id)
    );
    """,
    # ---------------- REFERRALS ----------------
    """
    CREATE TABLE IF NOT EXISTS referral_codes (
        code TEXT PRIMARY KEY,
        user_address TEXT NOT NULL,
        is_default BOOLEAN DEFAULT FALSE,
        is_active BOOLEAN DEFAULT TRUE,
        usage_count INTEGER DEFAULT 0,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS referral_sessions (
        session_id TEXT PRIMARY KEY,
        referral_code TEXT NOT NULL REFERENCES referral_codes(code) ON DELETE CASCADE,
        ip_address TEXT,
        user_agent TEXT,
        referrer_url TEXT,
        status TEXT DEFAULT 'active',
        referred_address TEXT,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        converted_at TIMESTAMP WITH TIME ZONE
    );
    """,
    # ---------------- ONE-PER-USER GUARDS ----------------
    # indexes so databases created before these constraints pick them up too
    """
    CREATE UNIQUE INDEX IF NOT EXISTS bot_cycle_payments_transaction_hash_key
        ON bot_cycle_payments (transaction_hash);
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS user_quiz_attempts_user_week_key
        ON user_quiz_attempts (user_address, week_number);
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS raffle_tickets_week_owner_key
        ON raffle_tickets (week_number, owner_address);
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS raffle_winners_week_key
        ON raffle_winners (week_number);
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS course_purchases_transaction_hash_key
        ON course_purchases (transaction_hash);
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS referral_codes_default_key
        ON referral_codes (user_address) WHERE is_default;
    """,
]


def run_migrations():
    """
    Applies every statement in order. A failing statement is logged and
    rolled back on its own so the rest still get a chance to run.
    """
    conn = None
    applied = 0
    try:
        conn = get_db()
        cur = conn.cursor()
        for sql in MIGRATIONS:
            try:
                cur.execute(sql)
                conn.commit()
                applied += 1
            except Exception as e:
                logger.error(f"❌ DB migration error: {e}")
                conn.rollback()
        cur.close()
    finally:
        if conn:
            conn.close()

    logger.info("🛠 %s/%s migrations applied", applied, len(MIGRATIONS))
    return applied
