from frog_portal.services.progress_service import (
    onboarding_progress, profile_completion, goal_label, form_progress,
    visa_step_progress, visa_plan_progress, study_plan_progress
)


class TestProfileProgress:
    def test_onboarding_rounds_half_up(self):
        profile = {"migration_goal": "overseas_job", "english_level": "B1"}
        # 2 of 7 answers -> 28.57
        assert onboarding_progress(profile) == 29

    def test_onboarding_empty(self):
        assert onboarding_progress(None) == 0
        assert onboarding_progress({}) == 0

    def test_profile_completion_rounds_down(self):
        profile = {
            "migration_goal": "overseas_job", "english_level": "B1", "work_experience": "3",
            "working_holiday": "no", "age_range": "25-29",
        }
        # 5 of 9 fields -> 55.5
        assert profile_completion(profile) == 55

    def test_future_occupation_zero_counts_as_filled(self):
        assert profile_completion({"future_occupation": 0}) == 11

    def test_goal_label(self):
        assert goal_label("overseas_job") == "海外就職"
        assert goal_label("custom") == "custom"
        assert goal_label(None) is None


class TestFormProgress:
    def test_counts_from_request(self):
        progress = form_progress(
            {"fields_count": 8, "done_fields_count": 6}, [], [{"status": "complete"}, {"status": "open"}]
        )
        assert progress["percent"] == 75
        assert progress["completed_sections"] == 1
        assert progress["total_sections"] == 2
        assert progress["color"] == "light_blue"

    def test_counts_from_pages(self):
        pages = [{"fields_count": 3, "done_fields_count": 3}, {"fields_count": 1, "done_fields_count": 1}]
        progress = form_progress({}, pages, [])
        assert progress["total_fields"] == 4
        assert progress["percent"] == 100
        assert progress["color"] == "green"

    def test_api_percentage_wins(self):
        progress = form_progress({"fields_count": 10, "done_fields_count": 1, "completion_percentage": 40}, [], [])
        assert progress["percent"] == 40

    def test_fractional_api_percentage_rounds(self):
        assert form_progress({"completion_percentage": 66.7}, [], [])["percent"] == 67
        assert form_progress({"completion_percentage": "66.7"}, [], [])["percent"] == 67
        assert form_progress({"completion_percentage": 12.4}, [], [])["percent"] == 12

    def test_no_fields(self):
        assert form_progress({}, [], [])["percent"] == 0


class TestVisaProgress:
    def test_step_states(self):
        progress = visa_step_progress(2)
        assert progress["percent"] == 50
        assert [s["state"] for s in progress["steps"]] == ["complete", "current", "upcoming"]

    def test_step_is_clamped(self):
        assert visa_step_progress(0)["percent"] == 0
        assert visa_step_progress(9)["percent"] == 100

    def test_plan_status_maps_to_step(self):
        assert visa_plan_progress("draft")["percent"] == 0
        assert visa_plan_progress("submitted")["percent"] == 50
        assert visa_plan_progress("reviewed")["percent"] == 100
        assert visa_plan_progress("unknown")["percent"] == 0

    def test_study_plan_without_plans(self):
        progress = study_plan_progress([])
        assert progress["percent"] == 0
        assert len(progress["steps"]) == 4

    def test_any_plan_completes_visa_planning(self):
        progress = study_plan_progress([{"status": "draft"}])
        assert progress["percent"] == 25
        completed = {s["key"] for s in progress["steps"] if s["completed"]}
        assert completed == {"visa_planning"}

    def test_approved_first_plan(self):
        progress = study_plan_progress([{"status": "approved"}, {"status": "draft"}])
        assert progress["percent"] == 75
