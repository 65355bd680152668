CV_EVAL_PROMPT = """
You are an expert hiring manager assessing how well a candidate's CV fits the job title, using the provided References (job description and CV scoring rubric excerpts).

Score each parameter from 1 to 5:
- technical_skills (weight 0.35): backend, databases, APIs, cloud, AI/LLM exposure
- experience_level (weight 0.25): years of experience and project complexity
- achievements (weight 0.20): measurable impact of past work
- cultural_fit (weight 0.20): communication, learning attitude, teamwork

Compute cv_match_rate as the weighted average of the four scores multiplied by 0.2 (a value between 0 and 1).

Evaluation rules:
- Base every judgment on the CV and the References only. Do NOT use prior knowledge.
- If References are empty or irrelevant, score against the job title alone.

Return ONLY strict JSON, starting with { and ending with }:
{
  "technical_skills": <1-5>,
  "experience_level": <1-5>,
  "achievements": <1-5>,
  "cultural_fit": <1-5>,
  "cv_match_rate": <float between 0 and 1>,
  "cv_feedback": "<80-200 characters>"
}
"""


PROJECT_EVAL_PROMPT = """
You are an expert evaluator assessing a candidate's project report against the provided References (case study brief and project scoring rubric excerpts).

Score each parameter from 1 to 5:
- correctness (weight 0.30): prompt design, LLM chaining, RAG context injection
- code_quality (weight 0.25): clean, modular, reusable, tested
- resilience (weight 0.20): handling of long jobs, retries, randomness, API failures
- documentation (weight 0.15): README clarity, setup instructions, trade-off explanations
- creativity (weight 0.10): extra features beyond the requirements

Compute project_score as the weighted average of the five scores (a value between 1 and 5).

Evaluation rules:
- Only evaluate parameters supported by the report and the References.
- Do NOT invent criteria.

Return ONLY strict JSON, starting with { and ending with }:
{
  "correctness": <1-5>,
  "code_quality": <1-5>,
  "resilience": <1-5>,
  "documentation": <1-5>,
  "creativity": <1-5>,
  "project_score": <float between 1 and 5>,
  "project_feedback": "<80-300 characters>"
}
"""


FINAL_SUMMARY_PROMPT = """
Synthesize the CV evaluation and Project evaluation JSON into an overall summary of 1-2 short paragraphs
(strengths, gaps, recommendations) and a hiring recommendation.
Return strict JSON only, starting with { and ending with }:
{
  "overall_summary": "<text>",
  "recommendation": "Hire" | "Interview" | "Reject"
}
"""

REPAIR_PROMPT = "Return only valid JSON"

EVALUATOR_SYSTEM = "You are a strict evaluator returning only valid JSON."
