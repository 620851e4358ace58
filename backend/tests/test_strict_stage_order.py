import pytest
from robotcare.errors import Conflict
from robotcare.models.ticket import StageType
from robotcare.services.workflow import assert_predecessors_started
from types import SimpleNamespace
from tests.test_utils_seed import seed_tenancy, actor_for, make_engine, create_ticket


def test_predecessor_check_is_pure():
    saved = [SimpleNamespace(stage_type='abnormal_description'), SimpleNamespace(stage_type='abnormal_analysis')]
    assert_predecessors_started(saved, StageType.REQUIRED_PARTS)
    assert_predecessors_started([], StageType.ABNORMAL_DESCRIPTION)
    with pytest.raises(Conflict) as exc:
        assert_predecessors_started(saved, StageType.SUMMARY)
    assert exc.value.meta['missing'] == ['required_parts', 'on_site_solution']


def test_permissive_mode_allows_any_order(app_instance):
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    stage = make_engine(app_instance).create_or_update_stage(
        actor_for(t.engineer), ticket.id, 'on_site_solution', {'content': 'Swapped cable'})
    assert stage.stage_type == 'on_site_solution'


def test_strict_mode_requires_earlier_stages(app_instance):
    t = seed_tenancy()
    ticket = create_ticket(app_instance, t)
    engine = make_engine(app_instance, strict_stage_order=True)
    actor = actor_for(t.engineer)
    with pytest.raises(Conflict):
        engine.create_or_update_stage(actor, ticket.id, 'abnormal_analysis', {'content': 'Worn bearing'})
    with pytest.raises(Conflict):
        engine.complete_summary(actor, ticket.id, 'done')
    engine.create_or_update_stage(actor, ticket.id, 'abnormal_description', {'content': 'Noise'})
    engine.create_or_update_stage(actor, ticket.id, 'abnormal_analysis', {'content': 'Worn bearing'})
    engine.create_or_update_stage(actor, ticket.id, 'required_parts', {})
    engine.create_or_update_stage(actor, ticket.id, 'on_site_solution', {'content': 'Replaced bearing'})
    stage = engine.complete_summary(actor, ticket.id, 'Bearing replaced')
    assert stage.status == 'completed'
    # confirmation is never blocked by stage order
    rating = engine.confirm_by_customer(actor_for(t.end_admin), ticket.id, 4)
    assert rating.score == 4
