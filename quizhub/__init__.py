"""QuizHub: quiz-taking API with JWT access/refresh token rotation."""
