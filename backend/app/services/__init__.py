# Services package init
"""
Prompt & Pause Backend — Services Layer
========================================

What:  Business logic between routes (HTTP) and the database.
How:   Each service is a class with a module-level singleton; routes and
       cron jobs import the singleton.

Service Inventory:
    - tier / timezones / analytics: pure helpers (plan limits, local time, moods)
    - LLMService (abstract) + GeminiService: prompt and insight text generation
    - PromptService: daily prompt generation with quota and fallback
    - ReflectionService: journal entries, weekly quota, stats, mood analytics
    - DigestService: weekly digest assembly, cached AI insights, delivery
    - EmailService / SlackService: outbound delivery over HTTP
    - UserService: profiles, preferences, support contact
    - cron_service: scheduled batch jobs with run history
    - AdminService: back-office queries and audited mutations
"""
