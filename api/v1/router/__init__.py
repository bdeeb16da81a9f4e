from api.v1.router.study_plans import router as study_plans
