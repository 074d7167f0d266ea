"""Tests for the crawl orchestrator walking a fake ClickUp hierarchy."""

from pathlib import Path

import pytest

from clickup_archiver.exporters.markdown_exporter import EMPTY_DOCUMENT_NOTE
from clickup_archiver.fetchers import FetcherError, FetchResult, StructuralConfigurationFailure
from clickup_archiver.models import ContentNode, PageNode, SpaceDescriptor
from clickup_archiver.orchestrator import CrawlOrchestrator, Pacer, WalkProgress
from clickup_archiver.orchestrator.crawl_orchestrator import task_is_complete


def complete_task(task_id, **extra):
    task = {
        'id': task_id,
        'name': f'Task {task_id}',
        'subtasks': [],
        'description': 'plain',
        'markdown_description': '**md**'
    }
    task.update(extra)
    return task


def partial_task(task_id):
    return {'id': task_id, 'name': f'Task {task_id}'}


def no_sleep(seconds):
    pass


def hierarchy(**overrides):
    """One workspace, one space, one folder, two lists, two docs."""
    tables = {
        'spaces': {'ws1': [{'id': 's1', 'name': 'Space One'}]},
        'space_lists': {'s1': [{'id': 'l1', 'name': 'List One'}]},
        'folders': {'s1': [{'id': 'f1', 'name': 'Folder'}]},
        'folder_lists': {'f1': [{'id': 'l2', 'name': 'List Two'}]},
        'tasks': {
            'l1': [[complete_task('t1'), partial_task('t2')], [complete_task('t3')]],
            'l2': [partial_task('t4')],
        },
        'task_details': {
            't2': complete_task('t2', detailed=True),
            't4': complete_task('t4', detailed=True),
        },
        'views': {'s1': [
            {'id': 'd1', 'name': 'Doc One', 'type': 'doc'},
            {'id': 'v-list', 'name': 'Board', 'type': 'board'},
        ]},
        'folder_docs': {'f1': [{'id': 'd2', 'name': 'Doc Two'}]},
        'documents': {
            'd1': ContentNode(id='d1', name='Doc One', pages=[
                PageNode(id='p1', name='Intro', content='Hello')
            ]),
            'd2': ContentNode(id='d2', name='Doc Two', parent_id='d1', pages=[
                PageNode(id='p2', name='Notes', content='World')
            ]),
        },
    }
    tables.update(overrides)
    return tables


@pytest.fixture
def space():
    return SpaceDescriptor(id='s1', name='Space One', workspace_id='ws1')


def build(fake_fetcher, crawl_config, **overrides):
    fetcher = fake_fetcher(workspaces=[{'id': 'ws1', 'name': 'Workspace'}], **hierarchy(**overrides))
    return fetcher, CrawlOrchestrator(crawl_config, fetcher, sleep=no_sleep)


class TestTaskWalk:

    def test_tasks_are_yielded_in_order_with_lazy_completion(self, fake_fetcher, crawl_config, space):
        fetcher, orchestrator = build(fake_fetcher, crawl_config)

        tasks = list(orchestrator.iter_space_tasks(space))

        assert [t['id'] for t in tasks] == ['t1', 't2', 't3', 't4']
        assert tasks[1]['detailed'] is True
        assert tasks[3]['detailed'] is True
        assert fetcher.calls_to('task_details') == ['t2', 't4']

    def test_all_task_pages_are_read(self, fake_fetcher, crawl_config, space):
        fetcher, orchestrator = build(fake_fetcher, crawl_config)

        list(orchestrator.iter_space_tasks(space))

        assert fetcher.calls_to('tasks_page') == [('l1', 0), ('l1', 1), ('l2', 0)]

    def test_rate_limit_mid_walk_keeps_item_count(self, fake_fetcher, crawl_config, space):
        _, baseline = build(fake_fetcher, crawl_config)
        limited_details = {'t2': FetchResult.rate_limited('429'), 't4': complete_task('t4')}
        _, limited = build(fake_fetcher, crawl_config, task_details=limited_details)

        expected = list(baseline.iter_space_tasks(space))
        progress = WalkProgress()
        tasks = list(limited.iter_space_tasks(space, progress))

        assert len(tasks) == len(expected)
        assert tasks[1] == partial_task('t2')
        assert progress.rate_limited == 1
        assert progress.tasks_processed == 4

    def test_failed_detail_falls_back_to_partial_record(self, fake_fetcher, crawl_config, space):
        _, orchestrator = build(fake_fetcher, crawl_config, task_details={
            't2': FetchResult.failed('boom')
        })
        progress = WalkProgress()

        tasks = list(orchestrator.iter_space_tasks(space, progress))

        assert tasks[1] == partial_task('t2')
        assert tasks[3] == partial_task('t4')
        assert progress.failed_items == 1

    def test_rate_limited_list_is_skipped(self, fake_fetcher, crawl_config, space):
        tasks_table = hierarchy()['tasks']
        tasks_table['l1'] = FetchResult.rate_limited('429')
        _, orchestrator = build(fake_fetcher, crawl_config, tasks=tasks_table)
        progress = WalkProgress()

        tasks = list(orchestrator.iter_space_tasks(space, progress))

        assert [t['id'] for t in tasks] == ['t4']
        assert progress.lists_processed == 2
        assert progress.rate_limited == 1

    def test_collect_task_lists_merges_space_and_folder_lists(self, fake_fetcher, crawl_config, space):
        _, orchestrator = build(fake_fetcher, crawl_config)

        task_lists = orchestrator.collect_task_lists(space)

        assert [(t.id, t.name) for t in task_lists] == [('l1', 'List One'), ('l2', 'List Two')]

    def test_missing_capabilities_read_as_empty(self, fake_fetcher, crawl_config, space):
        _, orchestrator = build(fake_fetcher, crawl_config, folders={}, space_lists={})
        progress = WalkProgress()

        assert list(orchestrator.iter_space_tasks(space, progress)) == []
        assert progress.failed_items == 0


class TestDocumentDiscovery:

    def test_descriptors_from_all_indexes_are_merged(self, fake_fetcher, crawl_config, space):
        _, orchestrator = build(fake_fetcher, crawl_config)

        documents = orchestrator.discover_documents(space)

        assert [d.id for d in documents] == ['d1', 'd2']

    def test_later_index_wins_for_same_doc(self, fake_fetcher, crawl_config, space):
        _, orchestrator = build(fake_fetcher, crawl_config, list_docs={
            'l1': [{'id': 'd1', 'name': 'From List'}]
        })

        documents = orchestrator.discover_documents(space)

        assert len([d for d in documents if d.id == 'd1']) == 1
        assert next(d for d in documents if d.id == 'd1').name == 'From List'

    def test_folder_list_docs_are_read_last(self, fake_fetcher, crawl_config, space):
        _, orchestrator = build(
            fake_fetcher, crawl_config,
            list_docs={
                'l1': [{'id': 'd9', 'name': 'Space List Copy'}],
                'l2': [{'id': 'd9', 'name': 'Folder List Copy'}],
            }
        )

        documents = orchestrator.discover_documents(space)

        assert next(d for d in documents if d.id == 'd9').name == 'Folder List Copy'


class TestCrawlSpace:

    def test_writes_docs_tasks_and_lists(self, fake_fetcher, crawl_config, space):
        _, orchestrator = build(fake_fetcher, crawl_config)

        outcome = orchestrator.crawl_space(space)

        space_dir = Path(crawl_config['export']['output_directory']) / 'Space_One'
        assert (space_dir / 'Doc_One' / 'Intro.md').read_text(encoding='utf-8') == "# Intro\n\nHello"
        assert (space_dir / 'Doc_One' / 'Doc_Two' / 'Notes.md').read_text(encoding='utf-8') == "# Notes\n\nWorld"
        assert len((space_dir / 'tasks.csv').read_text(encoding='utf-8').splitlines()) == 5
        assert (space_dir / 'task_lists.csv').read_text(encoding='utf-8') == "id,name\nl1,List One\nl2,List Two"
        assert outcome.success
        assert outcome.counts['tasks'] == 4
        assert outcome.counts['task_lists'] == 2
        assert outcome.counts['documents'] == 2
        assert outcome.counts['pages'] == 2

    def test_failed_doc_fetch_keeps_partial_descriptor(self, fake_fetcher, crawl_config, space):
        _, orchestrator = build(fake_fetcher, crawl_config, documents={
            'd1': FetchResult.failed('500'),
        })

        outcome = orchestrator.crawl_space(space)

        space_dir = Path(crawl_config['export']['output_directory']) / 'Space_One'
        assert (space_dir / 'Doc_One.md').read_text(encoding='utf-8') == "# Doc One\n\n" + EMPTY_DOCUMENT_NOTE
        assert outcome.success
        assert outcome.counts['failed_items'] >= 1

    def test_docs_need_workspace_id(self, fake_fetcher, crawl_config):
        _, orchestrator = build(fake_fetcher, crawl_config)

        with pytest.raises(StructuralConfigurationFailure):
            orchestrator.crawl_space(SpaceDescriptor(id='s1', name='Space One'))

    def test_tasks_only_crawl_does_not_need_workspace_id(self, fake_fetcher, crawl_config):
        crawl_config['crawl']['include_docs'] = False
        _, orchestrator = build(fake_fetcher, crawl_config)

        outcome = orchestrator.crawl_space(SpaceDescriptor(id='s1', name='Space One'))

        assert outcome.counts['tasks'] == 4
        assert outcome.counts['documents'] == 0


class TestRun:

    def test_run_crawls_every_space(self, fake_fetcher, crawl_config):
        _, orchestrator = build(fake_fetcher, crawl_config)

        outcomes = orchestrator.run()

        assert [(o.item_id, o.success) for o in outcomes] == [('s1', True)]

    def test_rate_limited_run_does_not_raise_and_counts_match(self, fake_fetcher, crawl_config, tmp_path):
        _, baseline = build(fake_fetcher, crawl_config)
        limited_config = dict(crawl_config, export={'output_directory': str(tmp_path / 'limited')})
        _, limited = build(fake_fetcher, limited_config, task_details={
            't2': FetchResult.rate_limited('429'),
            't4': FetchResult.rate_limited('429'),
        })

        expected = baseline.run()[0]
        outcome = limited.run()[0]

        assert outcome.success
        assert outcome.counts['tasks'] == expected.counts['tasks']
        assert outcome.counts['rate_limited'] == 2

    def test_failing_space_does_not_stop_siblings(self, fake_fetcher, crawl_config):
        def boom():
            raise RuntimeError("boom")

        tables = hierarchy()
        tables['spaces'] = {'ws1': [{'id': 's0', 'name': 'Broken'}, {'id': 's1', 'name': 'Space One'}]}
        tables['space_lists'] = dict(tables['space_lists'], s0=boom)
        fetcher = fake_fetcher(workspaces=[{'id': 'ws1'}], **tables)
        orchestrator = CrawlOrchestrator(crawl_config, fetcher, sleep=no_sleep)

        outcomes = orchestrator.run()

        assert [(o.item_id, o.success) for o in outcomes] == [('s0', False), ('s1', True)]
        assert outcomes[0].error == 'boom'

    def test_unknown_space_fails_only_that_scope(self, fake_fetcher, crawl_config):
        _, orchestrator = build(fake_fetcher, crawl_config)

        outcomes = orchestrator.run(space_id='ghost')

        assert len(outcomes) == 1
        assert not outcomes[0].success
        assert 'Workspace ID is required' in outcomes[0].error

    def test_single_space_is_resolved_with_its_workspace(self, fake_fetcher, crawl_config):
        _, orchestrator = build(fake_fetcher, crawl_config)

        spaces = orchestrator.resolve_spaces(space_id='s1')

        assert spaces == [SpaceDescriptor(id='s1', name='Space One', workspace_id='ws1')]

    def test_unlisted_workspaces_abort_the_run(self, fake_fetcher, crawl_config):
        fetcher = fake_fetcher(workspaces=FetchResult.failed('401 Unauthorized'))
        orchestrator = CrawlOrchestrator(crawl_config, fetcher, sleep=no_sleep)

        with pytest.raises(FetcherError):
            orchestrator.run()

    def test_spaces_are_paced(self, fake_fetcher, crawl_config):
        delays = []
        tables = hierarchy()
        tables['spaces'] = {'ws1': [{'id': 's1', 'name': 'A'}, {'id': 's2', 'name': 'B'}]}
        crawl_config['advanced']['space_delay'] = 1.5
        crawl_config['crawl']['include_docs'] = False
        fetcher = fake_fetcher(workspaces=[{'id': 'ws1'}], **tables)
        orchestrator = CrawlOrchestrator(crawl_config, fetcher, sleep=delays.append)

        orchestrator.run()

        assert delays == [1.5]

    def test_describe_workspaces(self, fake_fetcher, crawl_config):
        _, orchestrator = build(fake_fetcher, crawl_config)

        assert orchestrator.describe_workspaces() == [{
            'id': 'ws1',
            'name': 'Workspace',
            'spaces': [{'id': 's1', 'name': 'Space One'}]
        }]


class TestHelpers:

    def test_task_is_complete(self):
        assert task_is_complete(complete_task('t1'))
        assert not task_is_complete(partial_task('t1'))
        assert not task_is_complete(complete_task('t1', description=''))

    def test_pacer_sleeps_fixed_delay(self):
        delays = []
        pacer = Pacer(0.25, sleep=delays.append)

        pacer.pause()
        pacer.pause()

        assert delays == [0.25, 0.25]
        assert pacer.pauses == 2

    def test_pacer_without_delay_does_not_sleep(self):
        delays = []
        Pacer(0, sleep=delays.append).pause()

        assert delays == []

    def test_walk_progress_description(self):
        progress = WalkProgress(lists_total=3, lists_processed=1, tasks_processed=7, current_list='Backlog')

        assert progress.describe(4, 10) == (
            "Lists: 1/3, List: Backlog, Tasks in list: 5/10, Total processed: 7"
        )
