from model.study_plans import StudyPlan, ScheduleTask, SubTask
