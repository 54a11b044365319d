"""
Database schema for ReelStudio.

Every statement is idempotent so the schema can be applied at each startup
(``python main.py init-db`` or the API lifespan).
"""

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        email           TEXT NOT NULL UNIQUE,
        name            TEXT,
        password_hash   TEXT NOT NULL,
        role            TEXT NOT NULL DEFAULT 'USER' CHECK (role IN ('USER', 'ADMIN')),
        is_approved     BOOLEAN NOT NULL DEFAULT FALSE,
        approved_at     TIMESTAMPTZ,
        approved_by     UUID,
        manual_budget   DOUBLE PRECISION,
        created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS content_jobs (
        id                      UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id                 UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        original_image_url      TEXT NOT NULL,
        image_prompt            TEXT NOT NULL,
        video_prompt            TEXT NOT NULL,
        transformed_image_url   TEXT,
        animated_video_url      TEXT,
        final_video_url         TEXT,
        status                  TEXT NOT NULL DEFAULT 'PENDING'
                                CHECK (status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')),
        progress                INTEGER NOT NULL DEFAULT 0 CHECK (progress BETWEEN 0 AND 100),
        current_stage           TEXT NOT NULL DEFAULT 'TRANSFORM'
                                CHECK (current_stage IN ('TRANSFORM', 'ANIMATE', 'FORMAT', 'COMPLETED')),
        error_message           TEXT,
        cost                    DOUBLE PRECISION NOT NULL DEFAULT 0,
        attempts                INTEGER NOT NULL DEFAULT 0,
        lease_owner             TEXT,
        lease_expires_at        TIMESTAMPTZ,
        created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        completed_at            TIMESTAMPTZ
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_content_jobs_user ON content_jobs (user_id, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_content_jobs_queue ON content_jobs (status, created_at)",
    """
    CREATE TABLE IF NOT EXISTS job_variations (
        id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        job_id          UUID NOT NULL REFERENCES content_jobs(id) ON DELETE CASCADE,
        video_url       TEXT NOT NULL,
        thumbnail_url   TEXT,
        cost            DOUBLE PRECISION NOT NULL DEFAULT 0,
        is_favorite     BOOLEAN NOT NULL DEFAULT FALSE,
        created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_job_variations_job ON job_variations (job_id, created_at DESC)",
    """
    CREATE TABLE IF NOT EXISTS model_catalog (
        id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        endpoint        TEXT NOT NULL UNIQUE,
        name            TEXT NOT NULL,
        category        TEXT NOT NULL CHECK (category IN ('image', 'video')),
        provider        TEXT NOT NULL,
        price_per_unit  DOUBLE PRECISION NOT NULL,
        price_unit      TEXT NOT NULL,
        max_resolution  TEXT,
        has_audio       BOOLEAN NOT NULL DEFAULT FALSE,
        avg_speed       DOUBLE PRECISION,
        quality_rating  INTEGER NOT NULL DEFAULT 3,
        description     TEXT,
        features        TEXT[] NOT NULL DEFAULT '{}',
        use_cases       TEXT[] NOT NULL DEFAULT '{}',
        is_active       BOOLEAN NOT NULL DEFAULT TRUE,
        created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS model_preferences (
        user_id                 UUID PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
        image_model             TEXT NOT NULL,
        image_to_video_model    TEXT NOT NULL,
        prioritize_quality      BOOLEAN NOT NULL DEFAULT TRUE,
        prioritize_cost         BOOLEAN NOT NULL DEFAULT FALSE,
        prioritize_speed        BOOLEAN NOT NULL DEFAULT FALSE,
        created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rate_limit_buckets (
        key         TEXT PRIMARY KEY,
        tokens      DOUBLE PRECISION NOT NULL,
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
]
