"""Print the Supabase schema for the mock test tables. Run the SQL in the Supabase SQL Editor."""
from mocktest import config

SCHEMA_SQL = """
-- Tests
CREATE TABLE IF NOT EXISTS tests (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    title TEXT NOT NULL,
    description TEXT,
    test_type VARCHAR(20) DEFAULT 'custom',
    duration_minutes INT NOT NULL DEFAULT 60,
    total_questions INT NOT NULL DEFAULT 0,
    negative_marking BOOLEAN NOT NULL DEFAULT FALSE,
    negative_marks_value NUMERIC(4,2) NOT NULL DEFAULT 0.25 CHECK (negative_marks_value >= 0),
    passing_percentage NUMERIC(5,2) NOT NULL DEFAULT 40,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Question bank
CREATE TABLE IF NOT EXISTS questions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    question_text TEXT NOT NULL,
    option_a TEXT NOT NULL,
    option_b TEXT NOT NULL,
    option_c TEXT NOT NULL,
    option_d TEXT NOT NULL,
    correct_option CHAR(1) NOT NULL CHECK (correct_option IN ('A', 'B', 'C', 'D')),
    explanation TEXT,
    difficulty VARCHAR(10) DEFAULT 'medium',
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Ordered questions of a test
CREATE TABLE IF NOT EXISTS test_questions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    test_id UUID NOT NULL REFERENCES tests(id) ON DELETE CASCADE,
    question_id UUID NOT NULL REFERENCES questions(id) ON DELETE CASCADE,
    question_order INT NOT NULL DEFAULT 0,
    UNIQUE(test_id, question_id)
);

-- Attempts (answers: {question_id: {"selected": "A".."D" or "", "marked": bool}})
CREATE TABLE IF NOT EXISTS test_attempts (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL,
    test_id UUID NOT NULL REFERENCES tests(id) ON DELETE CASCADE,
    started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    completed_at TIMESTAMPTZ,
    question_ids JSONB NOT NULL DEFAULT '[]',
    answers JSONB NOT NULL DEFAULT '{}',
    total_questions INT NOT NULL,
    max_score NUMERIC(6,2) NOT NULL,
    correct_answers INT NOT NULL DEFAULT 0,
    wrong_answers INT NOT NULL DEFAULT 0,
    skipped_answers INT NOT NULL DEFAULT 0,
    score NUMERIC(6,2) NOT NULL DEFAULT 0 CHECK (score >= 0),
    percentage NUMERIC(6,2) NOT NULL DEFAULT 0,
    is_passed BOOLEAN,
    time_taken_seconds INT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- At most one open attempt per user and test
CREATE UNIQUE INDEX IF NOT EXISTS uq_test_attempts_open
    ON test_attempts(user_id, test_id) WHERE completed_at IS NULL;

CREATE INDEX IF NOT EXISTS idx_test_questions_test_id ON test_questions(test_id, question_order);
CREATE INDEX IF NOT EXISTS idx_test_attempts_user_id ON test_attempts(user_id);
"""


def main():
    print("Mock test schema for Supabase")
    print(f"URL: {config.SUPABASE_URL}")
    statements = [s.strip() for s in SCHEMA_SQL.split(";") if s.strip()]
    print(f"{len(statements)} statements. Run this SQL in Supabase SQL Editor:")
    print(SCHEMA_SQL)


if __name__ == "__main__":
    main()
